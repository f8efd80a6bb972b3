"""
Pricing Service for Order Calculation
Local price estimates and shipment priority used when no live courier quote is at hand
"""
from enum import Enum as PyEnum

VOLUMETRIC_DIVISOR = 5000


class Priority(PyEnum):
    """Shipment priority shown on dashboards"""
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    URGENT = 'urgent'


class PricingService:
    """Service for calculating local delivery price estimates"""

    # Pricing constants (in INR)
    BASE_PRICE = 50
    PER_KG_RATE = 10

    # Extra charge percentages
    FRAGILE_CHARGE_PERCENT = 0.15  # 15% extra for fragile items

    # Declared value thresholds for priority
    HIGH_VALUE_THRESHOLD = 50000
    MEDIUM_VALUE_THRESHOLD = 10000

    @staticmethod
    def calculate_weights(weight_kg: float, dimensions: dict = None) -> dict:
        """
        Work out actual, volumetric and chargeable weight

        Args:
            weight_kg: Actual weight in kilograms
            dimensions: Optional {'length', 'width', 'height'} in cm

        Returns:
            dict: {'actual': float, 'volumetric': float, 'chargeable': float}
        """
        actual = float(weight_kg)
        volumetric = 0.0
        if dimensions:
            volumetric = (
                float(dimensions['length']) * float(dimensions['width']) * float(dimensions['height'])
            ) / VOLUMETRIC_DIVISOR

        return {
            'actual': round(actual, 3),
            'volumetric': round(volumetric, 3),
            'chargeable': round(max(actual, volumetric), 3),
        }

    @staticmethod
    def calculate_price_breakdown(weight_kg: float, package_type: str = None,
                                  dimensions: dict = None) -> dict:
        """
        Calculate a local price estimate for an order

        Args:
            weight_kg: Actual weight in kilograms
            package_type: 'document', 'package' or 'fragile'
            dimensions: Optional parcel dimensions in cm

        Returns:
            dict: {
                'base_price': float,
                'weight_price': float,
                'fragile_charge': float,
                'weights': {actual, volumetric, chargeable},
                'total_price': float,
                'currency': 'INR'
            }
        """
        weights = PricingService.calculate_weights(weight_kg, dimensions)

        base_price = PricingService.BASE_PRICE
        weight_price = weights['chargeable'] * PricingService.PER_KG_RATE
        subtotal = base_price + weight_price

        fragile_charge = 0
        if (package_type or '').lower() == 'fragile':
            fragile_charge = subtotal * PricingService.FRAGILE_CHARGE_PERCENT

        return {
            'base_price': round(base_price, 2),
            'weight_price': round(weight_price, 2),
            'fragile_charge': round(fragile_charge, 2),
            'weights': weights,
            'total_price': round(subtotal + fragile_charge, 2),
            'currency': 'INR',
        }

    @staticmethod
    def determine_priority(package_type: str = None, declared_value: float = None) -> str:
        """
        Determine shipment priority from package type and declared value

        Returns:
            str: 'urgent', 'high', 'medium' or 'low'
        """
        package_type = (package_type or '').lower()
        if 'express' in package_type or 'urgent' in package_type:
            return Priority.URGENT.value

        if declared_value and declared_value > PricingService.HIGH_VALUE_THRESHOLD:
            return Priority.HIGH.value

        if declared_value and declared_value > PricingService.MEDIUM_VALUE_THRESHOLD:
            return Priority.MEDIUM.value

        return Priority.LOW.value


__all__ = ['PricingService', 'Priority']
