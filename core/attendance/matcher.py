"""Nearest-neighbour face matching over a class roster."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import EmptyRoster, InvalidDescriptor
from .models import DESCRIPTOR_LENGTH, StudentFaceProfile

DEFAULT_MATCH_THRESHOLD = 0.6

RosterEntry = Union[StudentFaceProfile, Tuple[str, Sequence[float]]]


@dataclass(frozen=True)
class MatchResult:
    """Kết quả so khớp. ``accepted=False`` là NoMatch, không phải lỗi."""

    accepted: bool
    student_id: Optional[str] = None
    distance: Optional[float] = None
    threshold: float = DEFAULT_MATCH_THRESHOLD
    candidates: int = 0

    @property
    def status(self) -> str:
        return 'matched' if self.accepted else 'no_match'

    @property
    def confidence(self) -> Optional[float]:
        if self.distance is None:
            return None
        return round(min(max(1.0 - self.distance, 0.0), 1.0), 4)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'matched': self.accepted,
            # Không tiết lộ ứng viên gần nhất khi bị từ chối
            'student_id': self.student_id if self.accepted else None,
            'distance': round(self.distance, 4) if self.distance is not None else None,
            'confidence': self.confidence if self.accepted else None,
            'threshold': self.threshold,
            'candidates': self.candidates,
        }


def to_descriptor(values, length: int = DESCRIPTOR_LENGTH) -> np.ndarray:
    """Validate ``values`` as a descriptor and return it as a float64 vector."""
    if values is None or isinstance(values, (str, bytes)):
        raise InvalidDescriptor("Descriptor must be a sequence of numbers")
    try:
        raw = np.asarray(values)
    except (TypeError, ValueError) as exc:
        raise InvalidDescriptor("Descriptor must contain only numbers") from exc
    # Không chuyển ngầm chuỗi số hoặc bool sang float
    if raw.dtype.kind not in 'iuf':
        raise InvalidDescriptor("Descriptor must contain only numbers")
    vector = raw.astype(np.float64)
    if vector.ndim != 1 or vector.shape[0] != length:
        raise InvalidDescriptor(
            f"Descriptor must have exactly {length} values",
            length=int(vector.size),
        )
    if not np.all(np.isfinite(vector)):
        raise InvalidDescriptor("Descriptor contains NaN or infinite values")
    return vector


class FaceMatcher:
    """Pure Euclidean matcher; ties resolve to the first roster entry."""

    def __init__(
        self,
        threshold: float = DEFAULT_MATCH_THRESHOLD,
        descriptor_length: int = DESCRIPTOR_LENGTH,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.threshold = float(threshold)
        self.descriptor_length = int(descriptor_length)
        self._logger = logger or logging.getLogger(__name__)

    def _usable_entries(self, roster: Iterable[RosterEntry]) -> Tuple[List[str], List[np.ndarray]]:
        ids: List[str] = []
        vectors: List[np.ndarray] = []
        for entry in roster:
            if isinstance(entry, StudentFaceProfile):
                student_id, descriptor = entry.student_id, entry.descriptor
            else:
                student_id, descriptor = entry
            try:
                vectors.append(to_descriptor(descriptor, self.descriptor_length))
            except InvalidDescriptor:
                self._logger.debug("[FaceMatcher] Skipping %s: invalid descriptor", student_id)
                continue
            ids.append(student_id)
        return ids, vectors

    def distances(self, probe, roster: Iterable[RosterEntry]) -> List[Tuple[str, float]]:
        vector = to_descriptor(probe, self.descriptor_length)
        ids, vectors = self._usable_entries(roster)
        if not ids:
            raise EmptyRoster("No roster entry has a valid descriptor")
        values = np.linalg.norm(np.vstack(vectors) - vector, axis=1)
        return list(zip(ids, (float(v) for v in values)))

    def match(self, probe, roster: Iterable[RosterEntry]) -> MatchResult:
        pairs = self.distances(probe, roster)
        # np.argmin trả về vị trí đầu tiên khi có nhiều giá trị bằng nhau
        best = int(np.argmin([distance for _, distance in pairs]))
        student_id, distance = pairs[best]
        accepted = distance < self.threshold

        self._logger.debug(
            "[FaceMatcher] best=%s distance=%.4f threshold=%.2f accepted=%s",
            student_id, distance, self.threshold, accepted,
        )
        return MatchResult(
            accepted=accepted,
            student_id=student_id,
            distance=distance,
            threshold=self.threshold,
            candidates=len(pairs),
        )
