"""Editable prompt slots and their fixed defaults.

Every step of the workflow renders one of these templates at call time
(see roundtable/prompts/context.py). Users may edit any slot; edits persist in
the workflow snapshot until reset_prompts() restores DEFAULT_PROMPTS.
"""

from __future__ import annotations

from enum import Enum


class PromptSlot(str, Enum):
    TOPIC = "topic-gen"
    RESEARCH = "research"
    RESEARCH_SUPPLEMENT = "research-supplement"
    PANEL = "panel-gen"
    DISCUSSION_START = "discussion-start"
    DISCUSSION_EXTEND = "discussion-extend"
    ARTICLE = "article-gen"
    DISCUSSION_SYSTEM = "discussion-system-instruction"
    ARTICLE_SYSTEM = "article-system-instruction"


# ---------------------------------------------------------------------------
# Step templates
# ---------------------------------------------------------------------------
# Placeholders: {{topic}} {{researchData}} {{supplementalQuery}}
# {{characterProfiles}} {{existingTranscript}} {{transcript}}

_TOPIC_PROMPT = (
    "請以繁體中文，生成一個荒謬但引人深思的長篇文章主題，結合兩個完全無關的概念。"
    "例如：「火影忍者的敘事結構與日本當代社會創傷的相似之處」或「藝人豬哥亮與台積電股價表現之間的神秘關聯」。"
    "請只提供主題字串，不要加上任何引號或標籤。"
)

_RESEARCH_PROMPT = (
    "針對主題「{{topic}}」，請進行深入的網路搜尋，以繁體中文收集其核心概念的詳細資訊。"
    "請將主題拆解為多個關鍵字（例如，若主題為「火影忍者與日本社會創傷」，請搜尋「火影忍者劇情大綱」、"
    "「火影忍者核心主題」、「當代日本社會」、「現代日本的社會問題」、「日本社會創傷的成因」等），"
    "然後將搜尋結果整合成一份結構清晰、內容詳盡的研究簡報。請盡可能提供豐富且詳細的資訊，並使用 markdown 格式化文本。"
)

_RESEARCH_SUPPLEMENT_PROMPT = (
    "請根據以下現有研究資料：\n{{researchData}}\n\n"
    "針對主題「{{topic}}」，補充搜尋並提供關於「{{supplementalQuery}}」的詳細資訊。"
    "將補充資料以結構清晰、內容詳盡的markdown格式文本輸出，並整合到原有資料後方，但不要重複已有的資訊。"
)

_PANEL_PROMPT = (
    "根據主題「{{topic}}」及以下研究資料：「{{researchData}}」，請以繁體中文創建一個由6位虛構專家組成的多元化會議小組。"
    "每位專家都必須有獨特的中文姓名、具體的職業，以及與主題某一面向相關的詳細背景。"
    "這個團隊的設計應能促進辯論，成員間可能持有衝突但皆合理的觀點，以確保對主題進行全面且多角度的分析。"
    "例如，若主題是關於火影忍者和社會創傷，團隊可包含一位專攻日本流行文化的社會學家、一位臨床心理學家、"
    "一位文學評論家和一位經濟學家。請確保他們的個性和專業能形成有效的制衡與激盪。"
)

_DISCUSSION_START_PROMPT = (
    "主題：{{topic}}\n\n研究簡報：\n{{researchData}}\n\n與會者：\n{{characterProfiles}}\n\n"
    "你的任務是模擬一場在這些專家之間進行的、長篇且詳細的辯論會的完整逐字稿。"
    "這場討論的目標是為一篇關於此主題的長篇文章擬定大綱。他們應該涵蓋文章的可能結構、核心論點、所需數據和反方論點。"
    "每位專家都必須從自身的專業角度發言。目標是在達成大致共識前，對主題進行深入的探討。"
    "請以會議記錄的形式輸出，每一行都以角色名稱開頭，後接冒號和其發言內容。"
    "請確保討論內容充實，每位角色都有多次發言機會，並全程使用繁體中文。"
)

_DISCUSSION_EXTEND_PROMPT = (
    "目前為止的討論紀錄：\n{{existingTranscript}}\n\n主題：{{topic}}\n\n研究簡報：\n{{researchData}}\n\n"
    "與會者：\n{{characterProfiles}}\n\n"
    "你的任務是接續這場辯論。客戶認為先前的討論不夠深入。請引入新的觀點、挑戰現有的假設，或探討一個被忽略的切入點。"
    "生成一段實質性的新對話紀錄，為討論增添更多價值與深度。不要重複先前的論點。直接從下一位發言者的對話開始。全程使用繁體中文。"
)

_ARTICLE_PROMPT = (
    "你的任務是根據以下資料，撰寫一篇至少5000字的全面、深入的繁體中文文章。"
    "請利用提供的研究簡報作為事實基礎，並參考會議紀錄來建構核心論點、文章架構和多元觀點。"
    "最終的文章必須結構清晰（使用 markdown 標題）、條理分明，並將專家們辯論的想法無縫地整合在一起。"
    "請不要只是總結會議紀錄，而是要將其合成為一篇全新、具權威性的文章。\n\n"
    "主題：{{topic}}\n\n研究簡報：\n{{researchData}}\n\n會議紀錄：\n{{transcript}}\n\n"
    "現在，請開始撰寫這篇詳細的最終文章。"
)

# ---------------------------------------------------------------------------
# System instructions
# ---------------------------------------------------------------------------
# Sent as SystemMessage on discussion (start + extend) and article streams.

_DISCUSSION_SYSTEM = (
    "你是一位專業的會議主持人。你的任務是模擬一場專家間的對話。每位專家都必須根據其背景描述，"
    "從自己的專業角度進行論證。他們必須基於他人的觀點進行延伸、批判和挑戰，並使用繁體中文進行交流。"
)

_ARTICLE_SYSTEM = (
    "你是一位專業的長文作家。你的任務是將一場複雜的討論，合成為一篇條理清晰、結構嚴謹且見解深刻的繁體中文文章。"
    "你必須保持中立，準確地呈現各位專家的觀點，同時創造出引人入勝的敘事。"
)

DEFAULT_PROMPTS: dict[PromptSlot, str] = {
    PromptSlot.TOPIC: _TOPIC_PROMPT,
    PromptSlot.RESEARCH: _RESEARCH_PROMPT,
    PromptSlot.RESEARCH_SUPPLEMENT: _RESEARCH_SUPPLEMENT_PROMPT,
    PromptSlot.PANEL: _PANEL_PROMPT,
    PromptSlot.DISCUSSION_START: _DISCUSSION_START_PROMPT,
    PromptSlot.DISCUSSION_EXTEND: _DISCUSSION_EXTEND_PROMPT,
    PromptSlot.ARTICLE: _ARTICLE_PROMPT,
    PromptSlot.DISCUSSION_SYSTEM: _DISCUSSION_SYSTEM,
    PromptSlot.ARTICLE_SYSTEM: _ARTICLE_SYSTEM,
}


def default_prompts() -> dict[PromptSlot, str]:
    """Fresh copy of the defaults, safe to mutate."""
    return dict(DEFAULT_PROMPTS)
