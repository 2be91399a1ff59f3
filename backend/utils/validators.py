from datetime import datetime, timezone
from typing import Dict, Any, Optional


class Helpers:
    """Utility helper functions"""

    @staticmethod
    def get_current_timestamp() -> datetime:
        """Timezone-aware UTC now"""
        return datetime.now(timezone.utc)

    @staticmethod
    def format_timestamp(timestamp: datetime) -> str:
        """Format timestamp for API response"""
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return timestamp.isoformat()

    @staticmethod
    def parse_timestamp(timestamp_str: str) -> Optional[datetime]:
        """Parse an ISO string; returns None when it cannot be parsed"""
        try:
            parsed = datetime.fromisoformat(timestamp_str.strip().replace('Z', '+00:00'))
        except (ValueError, TypeError, AttributeError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    @staticmethod
    def build_error_response(message: str, code: Any = 400, details: Any = None) -> Dict[str, Any]:
        """Build standardized error response"""
        response = {
            'error': message,
            'code': code,
            'timestamp': Helpers.format_timestamp(Helpers.get_current_timestamp())
        }
        if details is not None:
            response['details'] = details
        return response
