"""
Email Notification Service
Sends emails for bookings, order status updates and deliveries
"""
import logging
from smtplib import SMTPException

from flask_mail import Message

from extensions import mail

logger = logging.getLogger(__name__)


class EmailService:

    @staticmethod
    def _send(msg):
        try:
            mail.send(msg)
            return {'status': 'success', 'message': 'Email sent'}
        except (SMTPException, OSError) as e:
            logger.error(f"Failed to send email '{msg.subject}' to {msg.recipients}: {e}")
            return {'status': 'error', 'message': str(e)}

    @staticmethod
    def send_booking_confirmation(user_email, tracking_number, courier_name, estimated_delivery=None):
        """
        Send email when a shipment is booked with a courier

        Args:
            user_email (str): Customer's email
            tracking_number (str): Order tracking number
            courier_name (str): Courier partner name
            estimated_delivery (datetime): Courier's delivery estimate
        """
        msg = Message(
            subject=f'CourierHub - Shipment {tracking_number} Booked',
            recipients=[user_email]
        )

        eta = estimated_delivery.strftime('%d %b %Y') if estimated_delivery else 'To be confirmed'
        msg.body = f"""
Hello,

Your shipment has been booked with {courier_name}.

Tracking Number: {tracking_number}
Estimated Delivery: {eta}

You will receive updates as your parcel moves through the delivery process.

Thank you for shipping with CourierHub!

Best regards,
CourierHub Team
        """

        return EmailService._send(msg)

    @staticmethod
    def send_status_update(user_email, tracking_number, status):
        """
        Send email when order status changes

        Args:
            user_email (str): Customer's email
            tracking_number (str): Order tracking number
            status (str): New order status
        """
        msg = Message(
            subject=f'CourierHub - Shipment {tracking_number} Update',
            recipients=[user_email]
        )

        msg.body = f"""
Hello,

Your shipment {tracking_number} has been updated.

New Status: {status.replace('_', ' ').title()}

Thank you for shipping with CourierHub!

Best regards,
CourierHub Team
        """

        return EmailService._send(msg)

    @staticmethod
    def send_delivery_complete(user_email, tracking_number):
        """
        Send email when delivery is completed

        Args:
            user_email (str): Customer's email
            tracking_number (str): Order tracking number
        """
        msg = Message(
            subject=f'CourierHub - Shipment {tracking_number} Delivered!',
            recipients=[user_email]
        )

        msg.body = f"""
Hello,

Your shipment {tracking_number} has been successfully delivered!

We hope you're satisfied with our service.

Thank you for shipping with CourierHub!

Best regards,
CourierHub Team
        """

        return EmailService._send(msg)

    @staticmethod
    def notify_status_change(user_email, tracking_number, status):
        """Pick the right email for a new order status"""
        if not user_email:
            return {'status': 'skipped', 'message': 'No recipient'}
        if status == 'delivered':
            return EmailService.send_delivery_complete(user_email, tracking_number)
        return EmailService.send_status_update(user_email, tracking_number, status)
