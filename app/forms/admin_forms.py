"""
Admin forms for coupon, delivery settings and order status management.

The admin endpoints take JSON bodies; ``json_formdata`` turns a payload into
the form data WTForms expects.
"""
from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import BooleanField, DateTimeField, DecimalField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import InputRequired, NumberRange, Length, Optional, ValidationError

from app.entities import DiscountType, OrderStatus

DATETIME_FORMATS = [
    '%Y-%m-%dT%H:%M:%S%z',
    '%Y-%m-%dT%H:%M:%S',
    '%Y-%m-%dT%H:%M',
    '%Y-%m-%d %H:%M:%S',
    '%Y-%m-%d',
]


def json_formdata(payload):
    """Flatten a JSON object into form data, dropping nulls."""
    data = MultiDict()
    for key, value in (payload or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        data.add(key, str(value))
    return data


class _JsonForm(FlaskForm):
    # CSRFProtect already guards every non-GET request.
    class Meta:
        csrf = False


class CouponForm(_JsonForm):
    """Form for creating and editing coupons."""

    code = StringField(
        'Code',
        validators=[InputRequired(message='Coupon code is required'), Length(min=1, max=50)]
    )

    description = TextAreaField('Description', validators=[Optional(), Length(max=255)])

    discount_type = SelectField(
        'Discount type',
        choices=[(DiscountType.PERCENTAGE.value, 'Percentage'), (DiscountType.FIXED.value, 'Fixed amount')],
        validators=[InputRequired(message='Discount type is required')],
        default=DiscountType.PERCENTAGE.value
    )

    discount_value = DecimalField(
        'Discount value',
        validators=[
            InputRequired(message='Discount value is required'),
            NumberRange(min=0, message='Discount value cannot be negative')
        ],
        places=2
    )

    min_order_amount = DecimalField(
        'Minimum order amount',
        validators=[Optional(), NumberRange(min=0, message='Minimum order amount cannot be negative')],
        places=2
    )

    max_discount_amount = DecimalField(
        'Maximum discount',
        validators=[Optional(), NumberRange(min=0, message='Maximum discount cannot be negative')],
        places=2
    )

    usage_limit = IntegerField(
        'Usage limit',
        validators=[Optional(), NumberRange(min=1, message='Usage limit must be at least 1')]
    )

    valid_from = DateTimeField('Valid from', validators=[Optional()], format=DATETIME_FORMATS)

    valid_until = DateTimeField(
        'Valid until',
        validators=[InputRequired(message='Expiry date is required')],
        format=DATETIME_FORMATS
    )

    def validate_discount_value(self, field):
        if self.discount_type.data == DiscountType.PERCENTAGE.value and field.data is not None and field.data > 100:
            raise ValidationError('A percentage discount cannot exceed 100')

    def to_values(self):
        """Keyword arguments for coupon_service.create_coupon / update_coupon."""
        return {
            'code': self.code.data,
            'description': self.description.data,
            'discount_type': self.discount_type.data,
            'discount_value': self.discount_value.data,
            'min_order_amount': self.min_order_amount.data,
            'max_discount_amount': self.max_discount_amount.data,
            'usage_limit': self.usage_limit.data,
            'valid_from': self.valid_from.data,
            'valid_until': self.valid_until.data,
        }


class DeliverySettingsForm(_JsonForm):
    """Form for the delivery fee policy."""

    delivery_fee = DecimalField(
        'Delivery fee',
        validators=[
            InputRequired(message='Delivery fee is required'),
            NumberRange(min=0, message='Delivery fee cannot be negative')
        ],
        places=2
    )

    free_delivery_threshold = DecimalField(
        'Free delivery threshold',
        validators=[
            InputRequired(message='Free delivery threshold is required'),
            NumberRange(min=0, message='Free delivery threshold cannot be negative')
        ],
        places=2
    )

    is_active = BooleanField('Active', default=True)


class OrderStatusForm(_JsonForm):
    """Form for moving an order through its status flow."""

    status = SelectField(
        'Status',
        choices=[(status.value, status.value) for status in OrderStatus],
        validators=[InputRequired(message='Status is required')]
    )

    delivery_person_id = StringField('Delivery person', validators=[Optional(), Length(max=64)])
