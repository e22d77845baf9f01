from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, Optional

from ecoquest.core.config import settings
from ecoquest.core.errors import VerificationInputInvalid, VerificationRejected
from ecoquest.features.verification.methods import (
    QuizLoader,
    verify_gps,
    verify_manual,
    verify_photo,
    verify_qr,
    verify_quiz,
)
from ecoquest.models.submission import SubmissionStatus
from ecoquest.models.task import Task, VerificationMethod

logger = logging.getLogger("ecoquest.verification")


@dataclass
class VerificationResult:
    status: SubmissionStatus
    enriched_proof: Dict[str, Any] = field(default_factory=dict)
    rejection: Optional[VerificationRejected] = None

    @property
    def reason(self) -> Optional[str]:
        return self.rejection.message if self.rejection else None


class ProofVerifier:
    """
    Judges a proof against a task's verification criteria.

    GPS, QR_SCAN and QUIZ decide automatically; PHOTO_UPLOAD and MANUAL_REPORT
    always defer to a human (PENDING). Nothing is persisted here: the only
    collaborator is the read-only quiz lookup.
    """

    def __init__(
        self,
        quiz_loader: QuizLoader,
        *,
        default_radius_meters: Optional[float] = None,
        default_passing_score: Optional[float] = None,
    ):
        radius = default_radius_meters if default_radius_meters is not None else settings.GPS_DEFAULT_RADIUS_METERS
        passing = default_passing_score if default_passing_score is not None else settings.QUIZ_DEFAULT_PASSING_SCORE
        self._evaluators = {
            VerificationMethod.GPS: partial(verify_gps, default_radius=radius),
            VerificationMethod.QR_SCAN: verify_qr,
            VerificationMethod.QUIZ: partial(verify_quiz, quiz_loader=quiz_loader, default_passing_score=passing),
            VerificationMethod.PHOTO_UPLOAD: verify_photo,
            VerificationMethod.MANUAL_REPORT: verify_manual,
        }

    def verify(self, task: Task, proof: Optional[Dict[str, Any]]) -> VerificationResult:
        """
        Returns APPROVED, PENDING or REJECTED. A failed deterministic check is a
        normal REJECTED result carrying the typed rejection; malformed proofs and
        quiz lookup problems raise.
        """
        if proof is not None and not isinstance(proof, dict):
            raise VerificationInputInvalid("Proof must be an object")
        proof = proof or {}
        enriched = dict(proof)
        evaluator = self._evaluators.get(VerificationMethod(task.verification_method))
        if evaluator is None:
            raise VerificationInputInvalid(f"Unsupported verification method {task.verification_method}")

        try:
            status = evaluator(task, proof, enriched)
        except VerificationRejected as exc:
            enriched["rejection"] = {"code": exc.code, "reason": exc.message, **exc.details}
            logger.info(
                "verification.rejected",
                extra={"task_id": task.task_id, "error_code": exc.code, "event_type": "verification.rejected"},
            )
            return VerificationResult(status=SubmissionStatus.REJECTED, enriched_proof=enriched, rejection=exc)

        return VerificationResult(status=status, enriched_proof=enriched)
