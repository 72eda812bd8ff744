"""
Field layout for Apple Wallet pass.json.
"""
from typing import Any, Dict, List, Optional

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "CAD": "C$",
    "AUD": "A$",
    "CHF": "CHF ",
    "SEK": "kr",
    "NZD": "NZ$",
    "MXN": "Mex$",
    "BRL": "R$",
    "ZAR": "R",
    "RUB": "₽",
    "KRW": "₩",
}


def pass_style(pass_type: Optional[str]) -> str:
    """Map a semantic pass type to the pass.json style key."""
    if pass_type in ("loyalty", "gift-card"):
        return "storeCard"
    if pass_type in ("offer", "coupon"):
        return "coupon"
    if pass_type in ("event", "ticket"):
        return "eventTicket"
    if pass_type == "boarding":
        return "boardingPass"
    return "generic"


def hex_to_rgb(value: str) -> str:
    value = value.lstrip("#")
    r, g, b = (int(value[i:i + 2], 16) for i in (0, 2, 4))
    return f"rgb({r}, {g}, {b})"


def currency_symbol(code: str) -> str:
    return CURRENCY_SYMBOLS.get(code, f"{code} ")


def format_balance(balance: Any) -> str:
    """Render a gift card balance as "$50.00" or "€20"."""
    text = str(balance)
    if " " in text:
        currency, amount = text.split(" ", 1)
        return f"{currency_symbol(currency)}{amount}"
    if text.startswith(("$", "€")):
        return text
    try:
        return f"${float(text):.2f}"
    except ValueError:
        return text


def _field(key: str, label: str, value: Any, **extra) -> Dict[str, Any]:
    return {"key": key, "label": label, "value": value, **extra}


def _date_field(key: str, label: str, value: Any) -> Dict[str, Any]:
    return _field(key, label, value, dateStyle="PKDateStyleShort")


def _header_fields(pass_data: Dict[str, Any], pass_type: Optional[str]) -> List[Dict[str, Any]]:
    fields = []
    if pass_type == "loyalty":
        balance = pass_data.get("pointsBalance") or pass_data.get("points") or "0"
        label = pass_data.get("pointsLabel") or "POINTS"
        fields.append(_field("points", label.upper(), str(balance)))
        if pass_data.get("programName"):
            fields.append(_field("programName", "PROGRAM", pass_data["programName"]))
    elif pass_type == "gift-card" and pass_data.get("balance"):
        fields.append(_field("balance", "BALANCE", format_balance(pass_data["balance"])))
    return fields


def _secondary_fields(pass_data: Dict[str, Any], pass_type: Optional[str]) -> List[Dict[str, Any]]:
    fields = []
    points_label = pass_data.get("pointsLabel")
    if pass_type == "loyalty":
        if pass_data.get("tier"):
            fields.append(_field("tier", "TIER", str(pass_data["tier"]).upper()))
        if pass_data.get("pointsForReward"):
            fields.append(_field("pointsForReward", "REWARD AT",
                                 f"{pass_data['pointsForReward']} {points_label or 'POINTS'}"))
        if pass_data.get("nextTier") and pass_data.get("pointsToNextTier"):
            fields.append(_field(
                "nextTier", "NEXT TIER",
                f"{pass_data['nextTier']} ({pass_data['pointsToNextTier']} {points_label or 'points'} needed)",
            ))

    if pass_data.get("membershipId"):
        fields.append(_field("memberId", "MEMBER ID", pass_data["membershipId"]))
    if pass_data.get("cardNumber"):
        fields.append(_field("cardNumber", "CARD NUMBER", pass_data["cardNumber"]))
    if pass_data.get("code"):
        fields.append(_field("code", "CODE", pass_data["code"]))
    return fields


def _auxiliary_fields(pass_data: Dict[str, Any], pass_type: Optional[str]) -> List[Dict[str, Any]]:
    fields = []
    if pass_type == "loyalty":
        issued = pass_data.get("issueDate") or pass_data.get("memberSince")
        if issued:
            fields.append(_date_field("issueDate", "ISSUED", issued))
        expires = pass_data.get("expirationDate") or pass_data.get("membershipExpiry")
        if expires:
            fields.append(_date_field("expirationDate", "EXPIRES", expires))
        if pass_data.get("nearestLocation"):
            fields.append(_field("nearestLocation", "NEAREST STORE", pass_data["nearestLocation"]))
        if pass_data.get("rewardDescription") and pass_data.get("pointsForReward"):
            fields.append(_field("rewardDescription", "REWARD", pass_data["rewardDescription"]))

    if pass_data.get("expiryDate"):
        fields.append(_date_field("expires", "EXPIRES", pass_data["expiryDate"]))
    if pass_data.get("membershipExpiry") and pass_type != "loyalty":
        fields.append(_date_field("membershipExpiry", "VALID UNTIL", pass_data["membershipExpiry"]))
    if pass_data.get("discount"):
        fields.append(_field("discount", "DISCOUNT", pass_data["discount"]))

    for index, extra in enumerate(pass_data.get("additionalFields") or []):
        fields.append(_field(f"custom_{index}", str(extra.get("label", "")).upper(), extra.get("value", "")))
    return fields


def _back_fields(pass_data: Dict[str, Any], pass_type: Optional[str]) -> List[Dict[str, Any]]:
    fields = []
    if pass_type == "loyalty":
        if pass_data.get("description"):
            fields.append(_field("description", "ABOUT THIS PROGRAM", pass_data["description"]))
        if pass_data.get("programWebsite"):
            fields.append(_field("programWebsite", "WEBSITE", pass_data["programWebsite"]))
        if pass_data.get("customerServicePhone"):
            fields.append(_field("customerService", "CUSTOMER SERVICE", pass_data["customerServicePhone"]))
        if pass_data.get("distanceToNearest") and pass_data.get("nearestLocation"):
            fields.append(_field("distanceInfo", "LOCATION INFO",
                                 f"{pass_data['nearestLocation']} - {pass_data['distanceToNearest']}"))
        if pass_data.get("nextTier") and pass_data.get("pointsToNextTier"):
            try:
                current = int(float(pass_data.get("pointsBalance") or 0))
                needed = int(float(pass_data["pointsToNextTier"]))
            except (TypeError, ValueError):
                current, needed = 0, 0
            if current + needed > 0:
                progress = round(current / (current + needed) * 100)
                fields.append(_field(
                    "tierProgress", "TIER PROGRESS",
                    f"{progress}% to {pass_data['nextTier']} tier. "
                    f"Earn {needed} more {pass_data.get('pointsLabel') or 'points'} to upgrade.",
                ))

    if pass_data.get("offerDetails"):
        fields.append(_field("offerDetails", "OFFER DETAILS", pass_data["offerDetails"]))
    if pass_data.get("description") and pass_type != "loyalty":
        fields.append(_field("description", "DESCRIPTION", pass_data["description"]))

    for index, extra in enumerate(pass_data.get("backFields") or []):
        fields.append(_field(f"back_{index}", str(extra.get("label", "")).upper(), extra.get("value", "")))
    return fields


def build_pass_fields(pass_data: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Lay out header/primary/secondary/auxiliary/back field groups for a pass."""
    pass_type = pass_data.get("passType")
    if pass_type == "loyalty":
        primary = [_field("title", "LOYALTY PROGRAM", pass_data.get("programName") or pass_data.get("title"))]
    else:
        primary = [_field("title", "TITLE", pass_data.get("title"))]

    return {
        "headerFields": _header_fields(pass_data, pass_type),
        "primaryFields": primary,
        "secondaryFields": _secondary_fields(pass_data, pass_type),
        "auxiliaryFields": _auxiliary_fields(pass_data, pass_type),
        "backFields": _back_fields(pass_data, pass_type),
    }
