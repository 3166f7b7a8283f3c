"""Static pattern libraries for the comment roles."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from .models import CommentRole


@dataclass(frozen=True)
class RoleDefinition:
    role: CommentRole
    patterns: Tuple[str, ...]
    keywords: Tuple[str, ...] = ()
    guidance: str = ""


@dataclass(frozen=True)
class RoleProfile:
    """A role together with the weight currently applied to it."""

    role: CommentRole
    weight: float
    patterns: Tuple[str, ...] = field(default_factory=tuple)
    keywords: Tuple[str, ...] = field(default_factory=tuple)


_DEFINITIONS: Dict[CommentRole, RoleDefinition] = {
    CommentRole.GREETING: RoleDefinition(
        role=CommentRole.GREETING,
        patterns=(
            "こんばんは！",
            "おはよう～",
            "初見です",
            "こんにちは！",
            "お疲れ様です",
            "きたー！",
            "おつかれ！",
            "はじめまして",
            "よろしくお願いします",
            "こんばんわ〜",
        ),
        keywords=("おはよう", "こんにちは", "こんばんは", "はじめ", "初回", "初見"),
        guidance='Write a welcoming greeting like "こんばんは！" or "初見です".',
    ),
    CommentRole.DEPARTURE: RoleDefinition(
        role=CommentRole.DEPARTURE,
        patterns=(
            "そろそろ寝ます",
            "おやすみ〜",
            "お疲れ様",
            "また明日！",
            "おつかれさまでした",
            "また来ます",
            "ばいばい〜",
            "お先に失礼します",
            "また今度！",
            "おやすみなさい",
        ),
        keywords=("終わり", "寝る", "おやすみ", "また明日", "そろそろ"),
        guidance='Write a goodbye like "おやすみ〜" or "お疲れ様".',
    ),
    CommentRole.REACTION: RoleDefinition(
        role=CommentRole.REACTION,
        patterns=(
            "かわいい",
            "草",
            "ｗｗｗ",
            "天才",
            "すごい！",
            "やばい",
            "えー！",
            "まじで？",
            "うける",
            "笑った",
            "おもしろい",
            "びっくり",
            "すげー",
        ),
        keywords=("！", "すごい", "やばい", "まじ"),
        guidance='Write a short emotional reaction like "かわいい" or "草".',
    ),
    CommentRole.AGREEMENT: RoleDefinition(
        role=CommentRole.AGREEMENT,
        patterns=(
            "たしかに",
            "それな",
            "わかる",
            "そうそう",
            "ほんとそれ",
            "めっちゃわかる",
            "そうだよね",
            "だよね〜",
            "わかりみ",
            "それ！",
            "そう思う",
            "まさに",
            "その通り",
        ),
        keywords=("そう", "やっぱり", "でも", "思う"),
        guidance='Write a short agreement like "たしかに" or "それな".',
    ),
    CommentRole.QUESTION: RoleDefinition(
        role=CommentRole.QUESTION,
        patterns=(
            "今日何してた？",
            "最近ハマってるものある？",
            "どうだった？",
            "なにそれ？",
            "どこの？",
            "いつから？",
            "なんで？",
            "どんな感じ？",
            "おいしかった？",
            "楽しかった？",
            "どうやって？",
            "誰と？",
            "どこで？",
        ),
        keywords=("？", "?", "なんで", "どう"),
        guidance="Ask one casual question about daily life or interests.",
    ),
    CommentRole.INSIDER: RoleDefinition(
        role=CommentRole.INSIDER,
        patterns=(
            "いつもの",
            "出たｗ",
            "安定だな",
            "またか",
            "お約束",
            "きたきた",
            "はじまった",
            "いつものやつ",
            "定番",
            "またこれ",
            "お決まり",
            "いつものパターン",
            "やっぱり",
        ),
        keywords=("また", "いつも", "定番"),
        guidance='Write a regular-viewer comment like "いつもの" or "出たｗ".',
    ),
    CommentRole.SUPPORT: RoleDefinition(
        role=CommentRole.SUPPORT,
        patterns=(
            "無理しないでね",
            "応援してます",
            "がんばって",
            "ゆっくりしてね",
            "体調大丈夫？",
            "気をつけて",
            "ファイト！",
            "応援してる",
            "頑張れ〜",
            "休んでね",
            "無理は禁物",
            "お身体お大事に",
        ),
        keywords=("疲れ", "大変", "辛い", "しんどい", "眠い"),
        guidance='Write a supportive comment like "無理しないでね" or "応援してます".',
    ),
    CommentRole.PLAYFUL: RoleDefinition(
        role=CommentRole.PLAYFUL,
        patterns=(
            "今の伏線？",
            "台本ですか？",
            "やらせ？",
            "仕込み？",
            "スクリプト通り",
            "演技うまい",
            "お芝居？",
            "計画通り",
            "シナリオ？",
            "予定調和",
            "茶番",
            "コント？",
        ),
        keywords=("偶然", "たまたま", "まさか"),
        guidance='Write playful teasing like "今の伏線？" or "台本ですか？".',
    ),
}

CONVERSATION_STARTERS: Dict[str, Tuple[str, ...]] = {
    "general": (
        "もうご飯食べた？",
        "最近ハマってるものある？",
        "今期どのアニメ見てる？",
        "今日はどんな一日だった？",
        "何か面白いことあった？",
        "最近どう？",
        "何してたの？",
        "調子はどう？",
    ),
    "food": (
        "今日何食べた？",
        "最近美味しいもの食べた？",
        "お腹すいてない？",
        "好きな料理は何？",
        "今度何食べたい？",
        "朝ごはん食べた？",
    ),
    "entertainment": (
        "今期どのアニメ見てる？",
        "最近面白い映画見た？",
        "ゲームやってる？",
        "音楽何聞いてる？",
        "本読んでる？",
    ),
    "daily": (
        "今日はどんな一日だった？",
        "今日何してた？",
        "明日の予定は？",
        "最近忙しい？",
        "何か変わったことあった？",
    ),
    "work": (
        "お仕事お疲れ様！",
        "今日は忙しかった？",
        "勉強してる？",
        "プロジェクトの調子は？",
        "今日は何時まで？",
    ),
    "weather": (
        "寒くない？",
        "雨降ってる？",
        "今日の天気どう？",
        "季節の変わり目だね",
    ),
    "weekend": (
        "今日は休み？",
        "週末何してた？",
        "連休どうだった？",
        "今度の休みは何する？",
        "どこか行った？",
    ),
}

TOPIC_CATEGORIES: Dict[str, str] = {
    "食べ物": "food",
    "料理": "food",
    "ご飯": "food",
    "グルメ": "food",
    "food": "food",
    "アニメ": "entertainment",
    "映画": "entertainment",
    "ゲーム": "entertainment",
    "音楽": "entertainment",
    "読書": "entertainment",
    "game": "entertainment",
    "music": "entertainment",
    "仕事": "work",
    "勉強": "work",
    "学校": "work",
    "会社": "work",
    "work": "work",
    "日常": "daily",
    "生活": "daily",
    "今日": "daily",
    "天気": "weather",
    "季節": "weather",
    "weather": "weather",
    "休み": "weekend",
    "週末": "weekend",
    "連休": "weekend",
}

# Context-independent comments for degenerate input.
GENERIC_COMMENTS: Tuple[str, ...] = (
    "なるほど",
    "うんうん",
    "へー",
    "いいね",
    "ふむふむ",
)


class RoleCatalog:
    """Read-only lookup over role definitions and conversation starters."""

    def __init__(
        self,
        definitions: Optional[Mapping[CommentRole, RoleDefinition]] = None,
        *,
        starters: Optional[Mapping[str, Tuple[str, ...]]] = None,
        topic_categories: Optional[Mapping[str, str]] = None,
        generic: Tuple[str, ...] = GENERIC_COMMENTS,
    ) -> None:
        self._definitions = dict(definitions or _DEFINITIONS)
        missing = [role for role in CommentRole if role not in self._definitions]
        if missing:
            raise ValueError(f"Catalog is missing roles: {[r.value for r in missing]}")
        for definition in self._definitions.values():
            if not definition.patterns:
                raise ValueError(f"Role '{definition.role.value}' has no patterns")
        self._starters = dict(starters or CONVERSATION_STARTERS)
        self._topic_categories = dict(topic_categories or TOPIC_CATEGORIES)
        self.generic = generic

    def definition(self, role: CommentRole) -> RoleDefinition:
        return self._definitions[role]

    def patterns(self, role: CommentRole) -> Tuple[str, ...]:
        return self._definitions[role].patterns

    def keyword_matches(self, role: CommentRole, text: str) -> int:
        if not text:
            return 0
        return sum(1 for keyword in self._definitions[role].keywords if keyword in text)

    def topic_category(self, topic: Optional[str]) -> Optional[str]:
        if not topic:
            return None
        lowered = topic.lower()
        for keyword, category in self._topic_categories.items():
            if keyword in lowered:
                return category
        return None

    def starters(self, topic: Optional[str] = None) -> Tuple[str, ...]:
        category = self.topic_category(topic) or "general"
        return self._starters.get(category) or self._starters["general"]

    def profiles(self, weights: Mapping[CommentRole, float]) -> List[RoleProfile]:
        return [
            RoleProfile(
                role=role,
                weight=float(weights.get(role, 1.0)),
                patterns=definition.patterns,
                keywords=definition.keywords,
            )
            for role, definition in self._definitions.items()
        ]


__all__ = [
    "RoleDefinition",
    "RoleProfile",
    "RoleCatalog",
    "CONVERSATION_STARTERS",
    "TOPIC_CATEGORIES",
    "GENERIC_COMMENTS",
]
