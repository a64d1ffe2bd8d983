from marshmallow import EXCLUDE, ValidationError, validate, validates_schema

from board.extensions.extensions import ma


class PostSchema(ma.Schema):
    id = ma.String(allow_none=True)
    title = ma.String()
    content = ma.String()
    files = ma.List(ma.String())
    author = ma.String()
    date = ma.String()


class PostCreateSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    title = ma.String(required=True, validate=validate.Length(min=1))
    content = ma.String(load_default="")


class PostPatchSchema(ma.Schema):
    """Fields a caller may change on an existing post.

    Anything else in the body (author, files, date, id) is dropped.
    """

    class Meta:
        unknown = EXCLUDE

    title = ma.String(validate=validate.Length(min=1))
    content = ma.String()
    expected_id = ma.String(load_default=None)

    @validates_schema
    def require_one_field(self, data, **kwargs):
        if "title" not in data and "content" not in data:
            raise ValidationError("At least one field is required")
