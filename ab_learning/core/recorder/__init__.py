"""
Recording and audit system
Records engine decisions and their outcomes
"""

from .decision_recorder import DecisionRecorder, DecisionRecord, DECISION_TYPES
from .audit_logger import AuditLogger

__all__ = [
    'DecisionRecorder',
    'DecisionRecord',
    'DECISION_TYPES',
    'AuditLogger'
]
