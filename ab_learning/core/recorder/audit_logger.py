"""
Audit Logger
High-level audit trail of engine operations
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from ..exceptions import StorageError

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Audit logger for engine operations

    Messages go to the 'audit' logger with the payload attached as
    `audit` on the log record; when a recorder is given, every entry is
    also stored as a decision.
    """

    def __init__(self, recorder=None):
        """
        Initialize audit logger

        Args:
            recorder: DecisionRecorder instance (optional)
        """
        self.recorder = recorder
        self.audit_logger = logging.getLogger('audit')

    def log_operation(
        self,
        operation: str,
        details: Dict[str, Any],
        success: Optional[bool] = None
    ):
        """
        Log an operation

        Args:
            operation: Operation name, also used as the decision type
            details: Operation details
            success: Whether operation was successful
        """
        payload = {
            'operation': operation,
            'details': details,
            'success': success,
            'timestamp': datetime.now().isoformat()
        }

        if success is False:
            self.audit_logger.warning(f"Operation: {operation} - FAILED", extra={'audit': payload})
        elif success is True:
            self.audit_logger.info(f"Operation: {operation} - SUCCESS", extra={'audit': payload})
        else:
            self.audit_logger.info(f"Operation: {operation}", extra={'audit': payload})

        if self.recorder:
            # The audited operation has already taken effect
            try:
                self.recorder.record(
                    decision_type=operation,
                    context=details.get('context', {}),
                    parameters=details.get('parameters', {}),
                    result=details.get('result'),
                    success=success
                )
            except StorageError as e:
                logger.error(f"Failed to record {operation} decision: {e}")

    def log_decision(
        self,
        decision_type: str,
        context: Dict[str, Any],
        parameters: Dict[str, Any],
        result: Optional[Dict[str, Any]] = None,
        success: Optional[bool] = None
    ):
        """Log a decision with its inputs and outcome"""
        self.log_operation(
            decision_type,
            {
                'context': context,
                'parameters': parameters,
                'result': result
            },
            success=success
        )

    def log_config_change(self, section: str, key: str, old_value: Any, new_value: Any):
        """Log configuration change; signature matches ConfigManager listeners"""
        self.log_decision(
            'config_change',
            {'section': section, 'key': key},
            {'old_value': str(old_value), 'new_value': str(new_value)},
            success=True
        )
