from marshmallow import EXCLUDE, Schema, fields, validate

from kamkunji.models.order import OrderStatus
from kamkunji.models.product import PRODUCT_STATUSES

CONDITIONS = ("new", "like_new", "used", "refurbished")


class ProductSubmissionSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    description = fields.Str(load_default=None)
    price = fields.Decimal(required=True, places=2, validate=validate.Range(min=0, min_inclusive=False))
    category_id = fields.Int(load_default=None, strict=True)
    stock_quantity = fields.Int(load_default=1, strict=True, validate=validate.Range(min=0, max=10000))
    condition = fields.Str(load_default="used", validate=validate.OneOf(CONDITIONS))
    location = fields.Str(load_default=None)
    phone = fields.Str(load_default=None)
    image_urls = fields.List(fields.Str(), load_default=list, validate=validate.Length(max=10))


class AdminProductSchema(ProductSubmissionSchema):
    is_featured = fields.Bool(load_default=False)


class ProductUpdateSchema(Schema):
    """Only the keys sent are changed"""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(validate=validate.Length(min=1, max=255))
    description = fields.Str(allow_none=True)
    price = fields.Decimal(places=2, validate=validate.Range(min=0, min_inclusive=False))
    category_id = fields.Int(strict=True, allow_none=True)
    stock_quantity = fields.Int(strict=True, validate=validate.Range(min=0, max=10000))
    condition = fields.Str(validate=validate.OneOf(CONDITIONS))
    location = fields.Str(allow_none=True)
    phone = fields.Str(allow_none=True)
    image_urls = fields.List(fields.Str(), validate=validate.Length(max=10))


class AddCartItemSchema(Schema):
    product_id = fields.Int(required=True, strict=True)
    quantity = fields.Int(load_default=1, strict=True, validate=validate.Range(min=1, max=99))


class UpdateCartItemSchema(Schema):
    quantity = fields.Int(required=True, strict=True, validate=validate.Range(min=0, max=99))


class WishlistItemSchema(Schema):
    product_id = fields.Int(required=True, strict=True)


class CheckoutSchema(Schema):
    """Shipping details; required-ness is checked by the order service"""

    class Meta:
        unknown = EXCLUDE

    full_name = fields.Str(load_default="")
    email = fields.Str(load_default="")
    phone = fields.Str(load_default="")
    address = fields.Str(load_default="")
    city = fields.Str(load_default="")
    additional_info = fields.Str(load_default=None, allow_none=True)


class RetryPaymentSchema(Schema):
    phone = fields.Str(load_default=None)


class InitiatePaymentSchema(Schema):
    phone = fields.Str(required=True)
    amount = fields.Decimal(required=True)
    order_id = fields.Int(load_default=None, strict=True)


class ReportSchema(Schema):
    product_id = fields.Int(required=True, strict=True)
    reason = fields.Str(required=True, validate=validate.Length(min=1, max=5000))


class SignupSchema(Schema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)
    full_name = fields.Str(required=True)
    phone = fields.Str(load_default=None)


class LoginSchema(Schema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)


class ProductStatusSchema(Schema):
    status = fields.Str(required=True, validate=validate.OneOf(PRODUCT_STATUSES))


class FeaturedSchema(Schema):
    featured = fields.Bool(required=True)


class OrderStatusSchema(Schema):
    status = fields.Str(required=True, validate=validate.OneOf([s.value for s in OrderStatus]))


class ReportStatusSchema(Schema):
    status = fields.Str(required=True, validate=validate.OneOf(("resolved", "dismissed")))


class UserUpdateSchema(Schema):
    full_name = fields.Str()
    phone = fields.Str(allow_none=True)
    role = fields.Str(validate=validate.OneOf(("user", "admin")))


class CategorySchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    icon = fields.Str(load_default=None, allow_none=True)
    description = fields.Str(load_default=None, allow_none=True)


class CategoryUpdateSchema(Schema):
    name = fields.Str(validate=validate.Length(min=1, max=255))
    icon = fields.Str(allow_none=True)
    description = fields.Str(allow_none=True)


class EmailSchema(Schema):
    to = fields.Email(required=True)
    subject = fields.Str(required=True, validate=validate.Length(min=1, max=998))
    text = fields.Str(required=True)
    html = fields.Str(load_default=None, allow_none=True)


class AdminSetupSchema(Schema):
    email = fields.Str(required=True)
    password = fields.Str(required=True, load_only=True)
    full_name = fields.Str(load_default="Admin User")
