from marshmallow import Schema, fields, validate, ValidationError
from typing import Dict, Any

class EstablishmentFilterSchema(Schema):
    """Schema for validating establishment listing parameters"""
    risk_level = fields.Int(allow_none=True, validate=validate.OneOf([1, 2, 3]))
    min_score = fields.Int(allow_none=True, validate=validate.Range(min=0, max=100))
    max_score = fields.Int(allow_none=True, validate=validate.Range(min=0, max=100))
    zip = fields.Str(allow_none=True, validate=validate.Length(max=10))
    sort = fields.Str(load_default='cleanplate_score', validate=validate.OneOf([
        'cleanplate_score', 'latest_inspection_date', 'dba_name', 'pass_streak'
    ]))
    order = fields.Str(load_default='desc', validate=validate.OneOf(['asc', 'desc']))
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    per_page = fields.Int(load_default=25, validate=validate.Range(min=1, max=100))

class RecalculateAllSchema(Schema):
    """Schema for validating bulk recalculation requests"""
    max_workers = fields.Int(allow_none=True, validate=validate.Range(min=1, max=16))
    limit = fields.Int(allow_none=True, validate=validate.Range(min=1))
    as_of = fields.Date(allow_none=True)

class ScoreQuerySchema(Schema):
    """Schema for validating score breakdown queries"""
    as_of = fields.Date(allow_none=True)

def validate_establishment_filters(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate and clean establishment filter data"""
    schema = EstablishmentFilterSchema()
    try:
        # Remove empty strings and None values
        cleaned_data = {k: v for k, v in data.items() if v not in [None, '', 'None']}
        result = schema.load(cleaned_data)
    except ValidationError as err:
        raise ValueError(f"Invalid filters: {err.messages}")

    min_score, max_score = result.get('min_score'), result.get('max_score')
    if min_score is not None and max_score is not None and min_score > max_score:
        raise ValueError("Invalid filters: min_score cannot be greater than max_score")
    return dict(result)

def validate_recalculate_all(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate bulk recalculation request data"""
    schema = RecalculateAllSchema()
    try:
        result = schema.load(data or {})
        return dict(result)  # Ensure Dict type
    except ValidationError as err:
        raise ValueError(f"Invalid recalculation request: {err.messages}")

def validate_score_query(data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate score breakdown query parameters"""
    schema = ScoreQuerySchema()
    try:
        cleaned_data = {k: v for k, v in data.items() if v not in [None, '']}
        result = schema.load(cleaned_data)
        return dict(result)
    except ValidationError as err:
        raise ValueError(f"Invalid score query: {err.messages}")
