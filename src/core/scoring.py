"""Advertisement scoring (core domain).

The prompt is tuned for Chinese-language Telegram ad spam and asks the model
for a bare integer. Parsing is deliberately forgiving: the first run of
digits wins and the result is clamped to the 0-10 scale.
"""

from __future__ import annotations

import logging
import re

from core.models import Classification
from core.ports import OraclePort

LOGGER = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 10

_DIGITS = re.compile(r"[0-9]+")

SYSTEM_PROMPT = (
    "你是一個專門判斷文字廣告的廣告識別專家。"
    "禁止輸出或描述任何思考、推理、分析或中間過程，只需給出最終判斷分數。"
)

USER_PROMPT_TEMPLATE = """\
角色：你是 Telegram 文本廣告識別器。
任務：對輸入文本是否為推廣/廣告進行打分，輸出 0–10 的整數信心指數（10=幾乎確定是廣告，0=幾乎確定不是）。
只輸出數字，不得輸出任何其他文字或符號。

定義（正類）：「以推廣商品/服務/群組為目的」且至少包含以下強指標之一：
\t•\t聯絡/跳轉：@用戶名、VX/微信/WeChat/qq/q/企鹅、tg.me / t.me / http(s)://、「私聊/加我/進群/客服/報名」。
\t•\t交易資訊：明確價格/套餐/折扣（如「398 一箱」「799 暢飲」「日結」）、收/出/代/承兌/走量/引流/刷粉/上號/解封/代充。
\t•\t行業場景：KTV/酒局/成人服務、灰/黑產（如「USDT 承兌」「車隊」「專群」「漏洞資源」「色/菠菜」等）。

常見高風險模式（若出現，通常 ≥7）：
\t•\t海外社交賬號批發、自助下單、代註冊/批量開號、出售 Session/JSON 憑證。
\t•\t防封/防紅工具或服務（如「谷歌防紅」「蘋果/微軟全系支持」）搭配聯絡方式或宣傳口號。
\t•\t純宣傳語 + @聯絡方式（例：「🌍海外社交賬號 · 批發銷售 · 自助下單 @gn_KC」）視為推廣。

非廣告（負類）示例：中立討論、抱怨/吐槽、轉述他人觀點、技術提示、無推銷動機的資訊分享、玩笑或口頭禪。

打分規則（降誤殺）：
\t•\t9–10：同時出現「明確推銷/招攬」+「聯絡方式或鏈接」或「明確價格/套餐」，且語氣是招徠/號召行為。
\t•\t7–8：有明顯推廣意圖（如 KTV 套餐、承兌、專群合作等），但聯絡/價格缺一；或灰產術語很強烈。
\t•\t4–6：語義可疑但缺乏決定性信號（只有品牌名/性能描述/個人感受，未出現聯絡/價格/招攬）。傾向保守取低值以減少誤殺。
\t•\t0–3：明顯非廣告：資訊分享、個人評價、玩笑話、抱怨、無招攬/無聯絡/無價格。

判斷原則（先決條件）：
\t•\t若沒有「聯絡方式/鏈接/價格/招攬動詞」四類信號中的任一，通常 ≤3。
\t•\t要 ≥7，需滿足：
\t•\t至少兩項中等信號（如行業場景 + 招攬動詞 / 價格）；或
\t•\t一項特強信號（如「@聯絡 + 價格/套餐」「代×× + 私聊/加」）。

輸出格式：只輸出一個 0–10 的整數，不加空格、不加標點、不加文字。
禁止輸出任何思考、推理、分析或理由。

現在評分以下文本：
{content}"""


def build_user_prompt(text: str) -> str:
    # str.replace rather than format(): the candidate text may contain braces.
    return USER_PROMPT_TEMPLATE.replace("{content}", text)


def parse_score(raw_answer: str) -> int:
    """Extract the first integer from the oracle reply and clamp it to 0-10.

    A reply without digits scores 0.
    """

    match = _DIGITS.search(raw_answer or "")
    if not match:
        return MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, int(match.group(0))))


class ScoringClient:
    """Turns message text into a Classification via the oracle port.

    Oracle failures propagate as ClassificationError; this class never
    touches the state store.
    """

    def __init__(self, oracle: OraclePort, model_label: str = "") -> None:
        self._oracle = oracle
        self._model_label = model_label

    async def classify(self, text: str) -> Classification:
        LOGGER.info("Classifying message with model %s", self._model_label or "<default>")
        raw_answer = (await self._oracle.complete(SYSTEM_PROMPT, build_user_prompt(text))).strip()
        return Classification(score=parse_score(raw_answer), raw_answer=raw_answer)
