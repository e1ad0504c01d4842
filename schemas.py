from datetime import timezone
from typing import Any, Dict, List

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    pre_load,
    validate,
    validates,
)

from errors import BadRequest
from models import BOOKING_STATUSES

# ids, prices and counts are stored in 32-bit integer columns
MAX_INT = 2 ** 31 - 1
in_int_range = validate.Range(max=MAX_INT, error="number is too large")


def _max_len(limit: int) -> validate.Length:
    return validate.Length(max=limit, error="must be at most {max} characters")


def _strip(data: Dict[str, Any], *names: str) -> Dict[str, Any]:
    for name in names:
        value = data.get(name)
        if isinstance(value, str):
            data[name] = value.strip()
    return data


def _drop_omitted(data: Dict[str, Any]) -> Dict[str, Any]:
    """Treat blank strings and non-positive numbers as fields that were not sent."""
    cleaned = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        elif isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            continue
        cleaned[key] = value
    return cleaned


def load_request(schema, payload):
    """Validate a decoded JSON body; anything but an object is rejected."""
    if not isinstance(payload, dict):
        raise BadRequest("invalid request")
    return schema.load(payload)


def validation_errors(exc: ValidationError) -> List[Dict[str, str]]:
    errors = []
    messages = exc.messages if isinstance(exc.messages, dict) else {"_schema": exc.messages}
    for field, field_messages in messages.items():
        if isinstance(field_messages, dict):
            # nested (list item) errors: {index: [messages]}
            for index, nested in field_messages.items():
                for message in nested:
                    errors.append({"field": f"{field}[{index}]", "msg": message})
            continue
        for message in field_messages:
            errors.append({"field": field, "msg": message})
    return errors


class BaseSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class RegisterSchema(BaseSchema):
    name = fields.Str(required=True, error_messages={"required": "name is required"}, validate=_max_len(120))
    email = fields.Email(
        required=True,
        validate=_max_len(255),
        error_messages={"required": "email is required", "invalid": "email is not valid"},
    )
    password = fields.Str(required=True, error_messages={"required": "password is required"})

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        email = data.get("email")
        if isinstance(email, str):
            data["email"] = email.strip().lower()
        return _strip(data, "name")

    @validates("name")
    def validate_name(self, value: str, **kwargs):
        if not value:
            raise ValidationError("name is required")

    @validates("password")
    def validate_password(self, value: str, **kwargs):
        if len(value) < 6:
            raise ValidationError("password must be at least 6 characters")


class LoginSchema(BaseSchema):
    email = fields.Str(required=True, error_messages={"required": "email is required"})
    password = fields.Str(required=True, error_messages={"required": "password is required"})

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        email = data.get("email")
        if isinstance(email, str):
            data["email"] = email.strip().lower()
        return data

    @validates("email")
    def validate_email(self, value: str, **kwargs):
        if not value:
            raise ValidationError("email and password are required")

    @validates("password")
    def validate_password(self, value: str, **kwargs):
        if not value:
            raise ValidationError("email and password are required")


class ProfileSchema(BaseSchema):
    name = fields.Str(required=True, error_messages={"required": "name is required"}, validate=_max_len(120))

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        return _strip(data, "name")

    @validates("name")
    def validate_name(self, value: str, **kwargs):
        if not value:
            raise ValidationError("name is required")


class PasswordChangeSchema(BaseSchema):
    current_password = fields.Str(
        required=True, error_messages={"required": "current and new password are required"}
    )
    new_password = fields.Str(
        required=True, error_messages={"required": "current and new password are required"}
    )

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        return _strip(data, "current_password", "new_password")

    @validates("current_password")
    def validate_current(self, value: str, **kwargs):
        if not value:
            raise ValidationError("current and new password are required")

    @validates("new_password")
    def validate_new(self, value: str, **kwargs):
        if not value:
            raise ValidationError("current and new password are required")
        if len(value) < 6:
            raise ValidationError("password must be at least 6 characters")


class MovieCreateSchema(BaseSchema):
    title = fields.Str(required=True, error_messages={"required": "title and duration_mins are required"}, validate=_max_len(255))
    title_en = fields.Str(load_default="", validate=_max_len(255))
    title_kk = fields.Str(load_default="", validate=_max_len(255))
    description = fields.Str(load_default="")
    description_en = fields.Str(load_default="")
    description_kk = fields.Str(load_default="")
    duration_mins = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="title and duration_mins are required"), in_int_range],
        error_messages={"required": "title and duration_mins are required"},
    )
    poster_url = fields.Str(load_default="", validate=_max_len(500))
    country = fields.Str(load_default="", validate=_max_len(120))
    country_en = fields.Str(load_default="", validate=_max_len(120))
    country_kk = fields.Str(load_default="", validate=_max_len(120))
    genres = fields.Str(load_default="", validate=_max_len(255))
    genres_en = fields.Str(load_default="", validate=_max_len(255))
    genres_kk = fields.Str(load_default="", validate=_max_len(255))
    release_year = fields.Int(
        load_default=0,
        validate=validate.Range(min=0, max=MAX_INT, error="release_year is out of range"),
    )

    @post_load
    def trim(self, data: Dict[str, Any], **kwargs):
        for key, value in data.items():
            if isinstance(value, str):
                data[key] = value.strip()
        if not data["title"]:
            raise ValidationError("title and duration_mins are required", field_name="title")
        return data


class MovieUpdateSchema(BaseSchema):
    title = fields.Str(load_default=None, validate=_max_len(255))
    title_en = fields.Str(load_default=None, validate=_max_len(255))
    title_kk = fields.Str(load_default=None, validate=_max_len(255))
    description = fields.Str(load_default=None)
    description_en = fields.Str(load_default=None)
    description_kk = fields.Str(load_default=None)
    duration_mins = fields.Int(load_default=None, validate=in_int_range)
    poster_url = fields.Str(load_default=None, validate=_max_len(500))
    country = fields.Str(load_default=None, validate=_max_len(120))
    country_en = fields.Str(load_default=None, validate=_max_len(120))
    country_kk = fields.Str(load_default=None, validate=_max_len(120))
    genres = fields.Str(load_default=None, validate=_max_len(255))
    genres_en = fields.Str(load_default=None, validate=_max_len(255))
    genres_kk = fields.Str(load_default=None, validate=_max_len(255))
    release_year = fields.Int(load_default=None, validate=in_int_range)

    @post_load
    def drop_omitted(self, data: Dict[str, Any], **kwargs):
        return _drop_omitted(data)


class HallCreateSchema(BaseSchema):
    name = fields.Str(required=True, error_messages={"required": "name, rows, cols are required"}, validate=_max_len(120))
    rows = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="name, rows, cols are required"), in_int_range],
        error_messages={"required": "name, rows, cols are required"},
    )
    cols = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="name, rows, cols are required"), in_int_range],
        error_messages={"required": "name, rows, cols are required"},
    )

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        return _strip(data, "name")

    @validates("name")
    def validate_name(self, value: str, **kwargs):
        if not value:
            raise ValidationError("name, rows, cols are required")


class HallUpdateSchema(BaseSchema):
    name = fields.Str(load_default=None, validate=_max_len(120))

    @post_load
    def drop_omitted(self, data: Dict[str, Any], **kwargs):
        return _drop_omitted(data)


def _rfc3339(**kwargs):
    return fields.AwareDateTime(
        format="iso",
        error_messages={
            "invalid": "start_time must be RFC3339",
            "invalid_awareness": "start_time must be RFC3339",
            "required": "start_time must be RFC3339",
        },
        **kwargs,
    )


class SessionCreateSchema(BaseSchema):
    movie_id = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="movie_id, hall_id, base_price are required"), in_int_range],
        error_messages={"required": "movie_id, hall_id, base_price are required"},
    )
    hall_id = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="movie_id, hall_id, base_price are required"), in_int_range],
        error_messages={"required": "movie_id, hall_id, base_price are required"},
    )
    start_time = _rfc3339(required=True)
    base_price = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="movie_id, hall_id, base_price are required"), in_int_range],
        error_messages={"required": "movie_id, hall_id, base_price are required"},
    )

    @post_load
    def to_utc(self, data: Dict[str, Any], **kwargs):
        data["start_time"] = data["start_time"].astimezone(timezone.utc)
        return data


class SessionUpdateSchema(BaseSchema):
    movie_id = fields.Int(load_default=None, validate=in_int_range)
    hall_id = fields.Int(load_default=None, validate=in_int_range)
    start_time = _rfc3339(load_default=None)
    base_price = fields.Int(load_default=None, validate=in_int_range)

    @pre_load
    def blank_start_time(self, data: Dict[str, Any], **kwargs):
        start_time = data.get("start_time")
        if isinstance(start_time, str) and not start_time.strip():
            data = dict(data)
            data.pop("start_time")
        return data

    @post_load
    def drop_omitted(self, data: Dict[str, Any], **kwargs):
        data = _drop_omitted(data)
        if "start_time" in data:
            data["start_time"] = data["start_time"].astimezone(timezone.utc)
        return data


class BookingCreateSchema(BaseSchema):
    session_id = fields.Int(
        required=True,
        validate=[validate.Range(min=1, error="session_id, seat_ids, payment_method are required"), in_int_range],
        error_messages={"required": "session_id, seat_ids, payment_method are required"},
    )
    seat_ids = fields.List(
        fields.Int(validate=[validate.Range(min=1, error="seat ids must be positive integers"), in_int_range]),
        required=True,
        validate=validate.Length(min=1, error="session_id, seat_ids, payment_method are required"),
        error_messages={"required": "session_id, seat_ids, payment_method are required"},
    )
    payment_method = fields.Str(
        required=True, error_messages={"required": "session_id, seat_ids, payment_method are required"}
    )

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        return _strip(data, "payment_method")

    @validates("seat_ids")
    def validate_seat_ids(self, value: List[int], **kwargs):
        if len(set(value)) != len(value):
            raise ValidationError("seat_ids must not contain duplicates")

    @validates("payment_method")
    def validate_payment_method(self, value: str, **kwargs):
        if not value:
            raise ValidationError("session_id, seat_ids, payment_method are required")


class BookingStatusSchema(BaseSchema):
    status = fields.Str(
        required=True,
        validate=validate.OneOf(BOOKING_STATUSES, error="status must be confirmed or cancelled"),
        error_messages={"required": "status must be confirmed or cancelled"},
    )

    @pre_load
    def normalize(self, data: Dict[str, Any], **kwargs):
        status = data.get("status")
        if isinstance(status, str):
            data["status"] = status.strip().lower()
        return data


register_schema = RegisterSchema()
login_schema = LoginSchema()
profile_schema = ProfileSchema()
password_change_schema = PasswordChangeSchema()
movie_create_schema = MovieCreateSchema()
movie_update_schema = MovieUpdateSchema()
hall_create_schema = HallCreateSchema()
hall_update_schema = HallUpdateSchema()
session_create_schema = SessionCreateSchema()
session_update_schema = SessionUpdateSchema()
booking_create_schema = BookingCreateSchema()
booking_status_schema = BookingStatusSchema()
