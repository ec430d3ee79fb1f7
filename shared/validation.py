"""Input validation utilities."""
import re
import bleach


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


class Validator:
    """Input validation utilities."""

    # Local part must start/end with alphanumeric, no consecutive dots/special chars
    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9]+([._%+-][a-zA-Z0-9]+)*@([a-zA-Z0-9]+([.-][a-zA-Z0-9]+)*\.)+[a-zA-Z]{2,}$')
    ALLOWED_TAGS = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'blockquote']

    @staticmethod
    def validate_email(email):
        """Validate email format."""
        if not isinstance(email, str):
            raise ValidationError("Invalid email format")
        email = email.strip()
        if not Validator.EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email format")
        return email

    @staticmethod
    def _coordinate(value, label, limit):
        try:
            number = float(value.strip() if isinstance(value, str) else value)
        except (ValueError, TypeError):
            raise ValidationError(f"{label} must be a valid number")
        if not (-limit <= number <= limit):
            raise ValidationError(f"{label} must be between -{limit} and {limit}")
        return number

    @staticmethod
    def validate_latitude(lat):
        """Validate a latitude on its own and return it as a float."""
        return Validator._coordinate(lat, "Latitude", 90)

    @staticmethod
    def validate_longitude(lng):
        """Validate a longitude on its own and return it as a float."""
        return Validator._coordinate(lng, "Longitude", 180)

    @staticmethod
    def validate_coordinates(lat, lng):
        """Validate GPS coordinates and return them as floats."""
        return Validator.validate_latitude(lat), Validator.validate_longitude(lng)

    @staticmethod
    def sanitize_html(text):
        """Strip unsafe markup from free text using bleach.

        Plain text without markup characters is returned untouched.
        """
        if not text:
            return text
        if '<' not in text and '>' not in text and '&' not in text:
            return text
        return bleach.clean(text, tags=Validator.ALLOWED_TAGS, attributes={}, strip=True)


def format_pydantic_errors(exc):
    """Flatten a pydantic ValidationError into ``{'field', 'message'}`` dicts."""
    errors = []
    for error in exc.errors():
        field = '.'.join(str(x) for x in error['loc'])
        errors.append({'field': field, 'message': error['msg']})
    return errors
