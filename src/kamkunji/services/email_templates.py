from jinja2 import Environment, select_autoescape

_env = Environment(autoescape=select_autoescape(default=True, default_for_string=True))
_text_env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)

_LAYOUT_HEAD = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{{ title }}</title>
  <style>
    body { font-family: Arial, sans-serif; line-height: 1.6; color: #333; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .header { background: {{ accent }}; color: white; padding: 20px; text-align: center; border-radius: 8px 8px 0 0; }
    .content { background: #f9fafb; padding: 20px; border-radius: 0 0 8px 8px; }
    .order-details { background: white; padding: 20px; margin: 20px 0; border-radius: 8px; border: 1px solid #e5e7eb; }
    .item { display: flex; justify-content: space-between; padding: 10px 0; border-bottom: 1px solid #f3f4f6; }
    .total { font-weight: bold; font-size: 18px; padding: 15px 0; border-top: 2px solid #e5e7eb; }
    .footer { text-align: center; margin-top: 20px; color: #6b7280; font-size: 14px; }
  </style>
</head>
<body>
  <div class="container">
"""

_LAYOUT_FOOT = """
    <div class="footer">
      <p>This email was sent to {{ order.email }}</p>
      <p>&copy; {{ year }} Kamkunji Ndogo. All rights reserved.</p>
    </div>
  </div>
</body>
</html>
"""

_ITEMS = """
      <h4>Items Ordered:</h4>
      {% for item in order['items'] %}
      <div class="item">
        <span>{{ item.quantity }}x {{ item.product_name }}</span>
        <span>{{ item.price_display }}</span>
      </div>
      {% endfor %}
      <div class="total">
        <span>Total Amount:</span>
        <span>{{ order.total_display }}</span>
      </div>
"""

PAYMENT_CONFIRMATION_HTML = _env.from_string(_LAYOUT_HEAD + """
    <div class="header">
      <h1>Payment Confirmed!</h1>
      <p>Thank you for your order</p>
    </div>
    <div class="content">
      <h2>Hello {{ order.full_name }},</h2>
      <p>Great news! We've received your payment and your order has been confirmed.</p>
      <div class="order-details">
        <h3>Order Details</h3>
        <p><strong>Order ID:</strong> #{{ order.id }}</p>
        <p><strong>Status:</strong> <span style="color: #10b981; font-weight: bold;">Paid</span></p>
        <p><strong>Date:</strong> {{ date }}</p>
        {% if order.payment_reference %}<p><strong>M-Pesa receipt:</strong> {{ order.payment_reference }}</p>{% endif %}
""" + _ITEMS + """
      </div>
      <p>We're now processing your order and will ship it as soon as possible.</p>
      <p>Best regards,<br>The Kamkunji Ndogo Team</p>
    </div>
""" + _LAYOUT_FOOT)

PAYMENT_CONFIRMATION_TEXT = _text_env.from_string("""Payment Confirmed - Order #{{ order.id }}

Hello {{ order.full_name }},

Great news! We've received your payment and your order has been confirmed.

Order Details:
- Order ID: #{{ order.id }}
- Status: Paid
- Date: {{ date }}

Items Ordered:
{% for item in order['items'] %}
- {{ item.quantity }}x {{ item.product_name }}: {{ item.price_display }}
{% endfor %}

Total Amount: {{ order.total_display }}

Best regards,
The Kamkunji Ndogo Team
""")

STATUS_UPDATE_HTML = _env.from_string(_LAYOUT_HEAD + """
    <div class="header">
      <h1>Order Status Update</h1>
    </div>
    <div class="content">
      <h2>Hello {{ order.full_name }},</h2>
      <p>{{ status_message }}</p>
      <div class="order-details">
        <p><strong>Order ID:</strong> #{{ order.id }}</p>
        <p><strong>Status:</strong> {{ status_label }}</p>
        {% if order.shipping_address.address %}
        <p><strong>Shipping to:</strong> {{ order.shipping_address.address }}, {{ order.shipping_address.city }}</p>
        {% endif %}
""" + _ITEMS + """
      </div>
      <p>Best regards,<br>The Kamkunji Ndogo Team</p>
    </div>
""" + _LAYOUT_FOOT)

STATUS_UPDATE_TEXT = _text_env.from_string("""Order Status Update - Order #{{ order.id }}

Hello {{ order.full_name }},

{{ status_message }}

Status: {{ status_label }}
Total Amount: {{ order.total_display }}

Best regards,
The Kamkunji Ndogo Team
""")
