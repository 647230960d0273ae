from __future__ import annotations

from enum import Enum


class DeviceCategory(str, Enum):
    PHONE = "phone"
    LAPTOP = "laptop"
    IPAD = "ipad"


class AgeBracket(str, Enum):
    # Device age in months; selects the age-tier price.
    M0_3 = "0-3"
    M3_6 = "3-6"
    M6_11 = "6-11"
    M12_PLUS = "12+"


# Youngest first. Age-tier prices must not increase along this order.
AGE_BRACKET_ORDER = (AgeBracket.M0_3, AgeBracket.M3_6, AgeBracket.M6_11, AgeBracket.M12_PLUS)


class ConditionTier(str, Enum):
    GOOD = "good"
    AVERAGE = "average"
    BELOW_AVERAGE = "below_average"


# Best first. Deduction percentages should not decrease along this order.
CONDITION_TIER_ORDER = (ConditionTier.GOOD, ConditionTier.AVERAGE, ConditionTier.BELOW_AVERAGE)


class DeviceCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Accessory(str, Enum):
    CHARGER = "charger"
    BOX = "box"
    BILL = "bill"
