"""
Tracking presentation helpers: delivery progress, status copy and next steps
"""

CANCELLABLE_STATUSES = ('pending', 'confirmed', 'pickup_scheduled')

# Statuses from a manual tracking update that also move the order
SIGNIFICANT_STATUSES = ('picked_up', 'in_transit', 'out_for_delivery', 'delivered', 'cancelled')

STATUS_PROGRESS = {
    'pending': 0,
    'confirmed': 10,
    'pickup_scheduled': 20,
    'picked_up': 30,
    'in_transit': 60,
    'out_for_delivery': 85,
    'delivered': 100,
    'cancelled': 0,
    'returned': 0,
}

STATUS_DESCRIPTIONS = {
    'pending': 'Your order has been placed and is being processed',
    'confirmed': 'Your order has been confirmed and will be picked up soon',
    'pickup_scheduled': 'Pickup has been scheduled with the courier',
    'picked_up': 'Your package has been picked up and is on its way',
    'in_transit': 'Your package is in transit to the destination',
    'out_for_delivery': 'Your package is out for delivery and will arrive soon',
    'delivered': 'Your package has been successfully delivered',
    'cancelled': 'Your order has been cancelled',
    'returned': 'Your package is being returned to sender',
}


class TrackingService:

    @staticmethod
    def can_cancel(status):
        return status in CANCELLABLE_STATUSES

    @staticmethod
    def is_significant(status):
        return status in SIGNIFICANT_STATUSES

    @staticmethod
    def delivery_progress(status):
        return STATUS_PROGRESS.get(status, 0)

    @staticmethod
    def status_description(status):
        return STATUS_DESCRIPTIONS.get(status, 'Status update')

    @staticmethod
    def next_steps(status, can_cancel):
        """Customer-facing guidance for the current status"""
        steps = {
            'pending': [
                'We are processing your order',
                'You will receive confirmation soon',
                'You can cancel this order if needed' if can_cancel else '',
            ],
            'confirmed': [
                'Prepare your package for pickup',
                'Ensure someone is available during pickup hours',
                'You can still cancel this order' if can_cancel else '',
            ],
            'pickup_scheduled': [
                'Keep your package ready for pickup',
                'Ensure the pickup address is accessible',
                'You will receive pickup confirmation',
            ],
            'picked_up': [
                'Your package is now with the courier',
                'Track real-time updates here',
                'Delivery updates will be sent via SMS/email',
            ],
            'in_transit': [
                'Your package is on its way',
                'Check back for delivery updates',
                'Prepare for delivery at the destination',
            ],
            'out_for_delivery': [
                'Your package will be delivered today',
                'Ensure someone is available to receive it',
                'Have ID ready if signature is required',
            ],
            'delivered': [
                'Your package has been delivered successfully',
                'Please confirm receipt if requested',
                'Thank you for using our service',
            ],
            'cancelled': [
                'Your order has been cancelled',
                'Refund will be processed if applicable',
                'Contact support for assistance',
            ],
        }
        return [step for step in steps.get(status, []) if step]

    @staticmethod
    def booking_next_steps(label_available, pickup_date=None):
        """Guidance returned right after a shipment is booked"""
        steps = [
            'Your shipment has been booked successfully',
            'You will receive tracking updates via SMS and email',
            'Prepare your package for pickup',
            'Print the shipping label and attach to package' if label_available else '',
            f'Pickup scheduled for {pickup_date}' if pickup_date else 'Schedule pickup when ready',
        ]
        return [step for step in steps if step]
