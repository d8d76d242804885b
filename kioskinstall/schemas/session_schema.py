from marshmallow import Schema, fields, validate

class MockLoginSchema(Schema):
    role = fields.Str(required=True, validate=validate.OneOf(['ADMIN', 'FIELD_USER']))
