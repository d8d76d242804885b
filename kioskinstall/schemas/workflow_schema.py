from marshmallow import Schema, fields, validate, validates_schema, ValidationError

class SiteSelectionSchema(Schema):
    district = fields.Str(required=True, validate=validate.Length(min=1, max=128))
    store_id = fields.Str(allow_none=True, load_default=None, validate=validate.Length(min=1, max=64))


class LocationReadingSchema(Schema):
    latitude = fields.Float(allow_none=True, load_default=None)
    longitude = fields.Float(allow_none=True, load_default=None)
    accuracy = fields.Float(allow_none=True, load_default=None, validate=validate.Range(min=0))
    error = fields.Str(
        allow_none=True,
        load_default=None,
        validate=validate.OneOf(['PERMISSION_DENIED', 'UNAVAILABLE', 'TIMEOUT']),
    )

    @validates_schema
    def validate_reading(self, data, **kwargs):
        has_coords = data.get('latitude') is not None and data.get('longitude') is not None
        if not has_coords and not data.get('error'):
            raise ValidationError('Provide latitude and longitude, or an error code')


class CaptureFormSchema(Schema):
    category = fields.Str(required=True, validate=validate.OneOf(['BEFORE', 'AFTER', 'RECEIVING']))
