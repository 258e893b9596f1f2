"""Three-tier prompt-injection scoring over chunked text.

Text is split into fixed-size chunks and each chunk is scored in order.
Only INJECTION scores at or above ``sensitivity`` are tracked, and only
the highest of them counts.  That score is then compared with
``block_threshold`` first and ``warn_threshold`` second.

Per-evaluation state::

    Idle -> Scoring(i/N) -> Pass | Warn | Block
"""
from __future__ import annotations

import asyncio
import logging

from openguard.content.chunking import EVIDENCE_CHARS, chunk_content
from openguard.core.config import ClassificationConfig
from openguard.core.errors import ClassifierRequestError, OracleError
from openguard.core.interfaces import InjectionClassifier
from openguard.core.types import INJECTION_LABEL, SAFE_LABEL, ClassifierResult, GuardVerdict

logger = logging.getLogger(__name__)

ORACLE_ERROR = "oracle_error"


def format_confidence(score: float) -> str:
    """Render *score* as a percentage with one decimal, e.g. ``"91.0%"``."""
    return f"{score * 100:.1f}%"


def apply_thresholds(
    score: float,
    config: ClassificationConfig,
    evidence: str | None = None,
) -> GuardVerdict:
    """Map the highest tracked score to a verdict.

    Block is checked before warn, so a score crossing both thresholds
    blocks even when ``warn_threshold > block_threshold``.
    """
    if score >= config.block_threshold:
        return GuardVerdict.blocked(
            f"prompt injection detected (confidence: {format_confidence(score)})",
            label=INJECTION_LABEL,
            score=score,
            evidence=evidence,
        )
    if score >= config.warn_threshold:
        return GuardVerdict.warned(
            f"possible prompt injection (confidence: {format_confidence(score)})",
            label=INJECTION_LABEL,
            score=score,
            evidence=evidence,
        )
    return GuardVerdict.passed(label=SAFE_LABEL, score=score)


class ContentGuard:
    """Chunked, thresholded injection classification.

    Parameters
    ----------
    config:
        Thresholds, chunk size and per-chunk timeout.
    classifier:
        The oracle, usually a :class:`~openguard.content.classifiers.LazyClassifier`.
    """

    def __init__(self, config: ClassificationConfig, classifier: InjectionClassifier) -> None:
        self._config = config
        self._classifier = classifier

    @property
    def config(self) -> ClassificationConfig:
        return self._config

    @property
    def classifier(self) -> InjectionClassifier:
        return self._classifier

    async def _score_chunk(self, chunk: str) -> ClassifierResult:
        timeout = self._config.classifier_timeout_ms / 1000
        try:
            return await asyncio.wait_for(self._classifier.score(chunk), timeout=timeout)
        except TimeoutError as exc:
            raise ClassifierRequestError(
                f"Classifier did not answer within {self._config.classifier_timeout_ms} ms"
            ) from exc
        except OracleError:
            raise
        except Exception as exc:
            raise ClassifierRequestError(f"Classifier failed: {exc}") from exc

    async def classify(self, text: str) -> GuardVerdict:
        """Score *text* and return its tier.

        Raises
        ------
        OracleError
            If the oracle fails or times out on any chunk.  Remaining
            chunks are not scored.
        """
        if not text:
            return GuardVerdict.passed()

        chunks = chunk_content(text, self._config.chunk_size)
        highest = 0.0
        evidence: str | None = None

        for index, chunk in enumerate(chunks):
            result = await self._score_chunk(chunk)
            logger.debug(
                "Chunk %d/%d scored %s (%.3f)", index + 1, len(chunks), result.label, result.confidence
            )
            if (
                result.label == INJECTION_LABEL
                and result.confidence >= self._config.sensitivity
                and result.confidence > highest
            ):
                highest = result.confidence
                evidence = chunk[:EVIDENCE_CHARS]

        return apply_thresholds(highest, self._config, evidence)

    async def evaluate(self, text: str) -> GuardVerdict:
        """Like :meth:`classify`, but oracle failures follow ``fail_open``.

        On failure the verdict carries the ``oracle_error`` label: a pass
        when failing open, otherwise a block.
        """
        try:
            return await self.classify(text)
        except OracleError as exc:
            logger.error("Classification failed (%s): %s", exc.code, exc.message)
            if self._config.fail_open:
                logger.warning("Classifier unavailable; passing content unchecked (fail-open)")
                return GuardVerdict.passed(label=ORACLE_ERROR)
            return GuardVerdict.blocked(exc.message, label=ORACLE_ERROR, score=0.0)
