"""NameMatchResolver -- 基于名称的确定性任务解析

不依赖任何模型，离线可用；也是 FallbackResolver 的降级后备。

打分规则（0~1）：
1. 文本中出现任务 ID：1.0
2. 任务名整体出现在文本中：0.9 + 0.1 * 名称长度占比（越具体分越高）
3. 否则按关键词重合：0.35 + 0.5 * 命中比例，描述/标签有重合再 +0.1，上限 0.89
最高分低于 min_confidence，或第二名与第一名差距小于 ambiguity_margin 时返回 None。
"""

import re

import structlog

from .models import Resolution, TaskCandidate

log = structlog.get_logger()

_WORD_RE = re.compile(r"[\w']+", re.UNICODE)

# 表达“完成”的口头用语不参与匹配
_STOPWORDS = frozenset(
    {
        "a", "an", "the", "i", "i've", "ive", "im", "i'm", "my", "me", "we", "our",
        "just", "have", "has", "had", "did", "done", "do", "finally", "already",
        "finished", "complete", "completed", "mark", "marked", "as", "it", "is",
        "task", "todo", "to", "with", "of", "for", "off", "check", "checked",
        "please", "today", "that", "this",
    }
)


def _normalize(text: str) -> str:
    return " ".join(_WORD_RE.findall(text.lower()))


def _tokens(text: str) -> set[str]:
    return {w for w in _WORD_RE.findall(text.lower()) if w not in _STOPWORDS}


class NameMatchResolver:
    """按任务名称/描述/标签做确定性匹配"""

    name = "match"

    def __init__(
        self,
        min_confidence: float = 0.5,
        ambiguity_margin: float = 0.05,
    ) -> None:
        """
        Args:
            min_confidence: 低于此分数视为未找到
            ambiguity_margin: 前两名差距小于此值视为有歧义
        """
        self._min_confidence = min_confidence
        self._ambiguity_margin = ambiguity_margin

    async def resolve(
        self,
        text: str,
        candidates: list[TaskCandidate],
    ) -> Resolution | None:
        """从候选任务中找出用户所指的任务

        Returns:
            Resolution；未找到或有歧义时返回 None
        """
        text_norm = _normalize(text)
        if not text_norm or not candidates:
            return None
        text_tokens = _tokens(text)

        scored = sorted(
            ((self._score(text, text_norm, text_tokens, c), c) for c in candidates),
            key=lambda item: item[0],
            reverse=True,
        )
        best_score, best = scored[0]

        if best_score < self._min_confidence:
            log.debug("task_match_not_found", best_score=round(best_score, 3))
            return None

        if len(scored) > 1 and best_score - scored[1][0] < self._ambiguity_margin:
            log.debug(
                "task_match_ambiguous",
                best_task_id=best.id,
                runner_up_task_id=scored[1][1].id,
                best_score=round(best_score, 3),
            )
            return None

        return Resolution(
            task_id=best.id,
            task_name=best.name,
            confidence=round(best_score, 3),
            resolver=self.name,
        )

    @staticmethod
    def _score(
        text: str,
        text_norm: str,
        text_tokens: set[str],
        candidate: TaskCandidate,
    ) -> float:
        if candidate.id and candidate.id in text:
            return 1.0

        name_norm = _normalize(candidate.name)
        if not name_norm:
            return 0.0
        if f" {name_norm} " in f" {text_norm} ":
            return 0.9 + 0.1 * min(len(name_norm) / len(text_norm), 1.0)

        name_tokens = _tokens(candidate.name)
        if not name_tokens:
            return 0.0
        hits = len(name_tokens & text_tokens)
        if hits == 0:
            return 0.0

        score = 0.35 + 0.5 * hits / len(name_tokens)
        context_tokens = _tokens(candidate.description or "")
        for tag in candidate.tags:
            context_tokens |= _tokens(tag)
        if (context_tokens - name_tokens) & text_tokens:
            score += 0.1
        return min(score, 0.89)
