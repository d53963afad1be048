"""Validation utilities for the application."""
from typing import Dict, List, Any, Optional

from attendance_engine.models.entities import GeoLocation


class ValidationError(Exception):
    """Custom validation error."""
    pass


class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> Dict[str, Any]:
        """Validate required fields in data."""
        errors = []

        for field in required_fields:
            if field not in data or data[field] in (None, ''):
                errors.append(f"{field.title()} is required")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def require(data: Optional[Dict], required_fields: List[str]) -> Dict:
        """Raise ValidationError unless every field is present."""
        data = data or {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        result = Validator.validate_required_fields(data, required_fields)
        if not result['is_valid']:
            raise ValidationError('; '.join(result['errors']))
        return data

    @staticmethod
    def validate_coordinates(lat: Any, lng: Any) -> bool:
        """Validate latitude/longitude ranges."""
        try:
            lat, lng = float(lat), float(lng)
        except (TypeError, ValueError):
            return False
        return -90 <= lat <= 90 and -180 <= lng <= 180

    @staticmethod
    def parse_location(data: Dict, required: bool = True) -> Optional[GeoLocation]:
        """Read ``latitude``/``longitude`` from a request body."""
        lat, lng = data.get('latitude'), data.get('longitude')
        if lat is None and lng is None and not required:
            return None
        if not Validator.validate_coordinates(lat, lng):
            raise ValidationError("Valid latitude and longitude are required")
        return GeoLocation(lat=float(lat), lng=float(lng))
