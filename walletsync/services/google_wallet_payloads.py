"""
Google Wallet class/object payload construction and identifier derivation.
"""
import hashlib
import json
import logging
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

PASS_TYPES = ("loyalty", "gift-card", "offer", "generic")

# Pass type -> REST resource prefix (loyaltyclass, giftcardobject, ...)
RESOURCE_PREFIXES = {
    "loyalty": "loyalty",
    "gift-card": "giftcard",
    "offer": "offer",
    "generic": "generic",
}

# Pass type -> save-link payload key prefix (loyaltyClasses, giftCardObjects, ...)
SAVE_LINK_PREFIXES = {
    "loyalty": "loyalty",
    "gift-card": "giftCard",
    "offer": "offer",
    "generic": "generic",
}

FAR_FUTURE_DATE = "2099-12-31T23:59:59Z"
_ISO_WITH_TIME = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DATE_FIELDS = ("expiryDate", "validUntil", "validFrom", "eventDate", "membershipExpiry", "expirationDate")


def template_id(issuer_id: str, pass_type: str, pass_data: Dict[str, Any]) -> str:
    """
    Derive the shared class id from the branding content.

    Identical {title, type, brandColor, logo} always yield the same id, so
    holders of identically branded passes share one class.
    """
    content = json.dumps(
        {
            "title": pass_data.get("title") or "default",
            "type": pass_type,
            "brandColor": pass_data.get("brandColor"),
            "logo": pass_data.get("logo"),
        },
        separators=(",", ":"),
    )
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
    return f"{issuer_id}.{pass_type}_class_{digest}"


def object_id(issuer_id: str, pass_type: str, holder: str, timestamp_ms: int) -> str:
    """Derive a per-holder object id; the timestamp makes every id unique."""
    digest = hashlib.sha256(f"{holder}:{timestamp_ms}".encode("utf-8")).hexdigest()[:12]
    return f"{issuer_id}.{pass_type}_object_{digest}_{timestamp_ms}"


def pass_type_from_object_id(object_id: str) -> Optional[str]:
    """Read the pass-type tag embedded in an object id, if there is one."""
    local_id = object_id.split(".", 1)[-1]
    tag, sep, _ = local_id.partition("_object_")
    if not sep or tag not in RESOURCE_PREFIXES:
        return None
    return tag


def format_wallet_date(value: Optional[str]) -> Optional[str]:
    """Normalise a date string to the ISO 8601 form Google Wallet expects."""
    if not value:
        return value
    if _ISO_WITH_TIME.match(value):
        return value
    if _ISO_DATE.match(value):
        return f"{value}T23:59:59Z"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Invalid date format: {value}")
        return FAR_FUTURE_DATE
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_dates(pass_data: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(pass_data)
    for field in _DATE_FIELDS:
        if normalized.get(field):
            normalized[field] = format_wallet_date(normalized[field])
    return normalized


def validate_pass_data(pass_type: str, pass_data: Any) -> Tuple[bool, List[str]]:
    errors: List[str] = []
    if not isinstance(pass_data, dict):
        return False, ["Pass data is required and must be an object"]

    title = pass_data.get("title")
    if not isinstance(title, str) or not title.strip():
        errors.append("Pass title is required and cannot be empty")

    if pass_type not in PASS_TYPES:
        errors.append(f"Invalid pass type: {pass_type}. Must be one of: {', '.join(PASS_TYPES)}")

    if pass_type == "gift-card" and pass_data.get("balance") not in (None, ""):
        try:
            float(pass_data["balance"])
        except (TypeError, ValueError):
            errors.append("Gift card balance must be a valid number if provided")

    return not errors, errors


def _absolute_url(url: Optional[str], base_url: str) -> Optional[str]:
    if url and url.startswith("/"):
        return f"{base_url.rstrip('/')}{url}"
    return url


def _localized(value: str) -> Dict[str, Any]:
    return {"defaultValue": {"language": "en-US", "value": value}}


def _image(uri: Optional[str], description: Optional[str] = None) -> Optional[Dict[str, Any]]:
    if not uri:
        return None
    image: Dict[str, Any] = {"sourceUri": {"uri": uri}}
    if description:
        image["contentDescription"] = _localized(description)
    return image


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _text_module(header: str, body: str, module_id: str) -> Dict[str, str]:
    return {"header": header, "body": body, "id": module_id}


# Classes

def loyalty_class(class_id: str, pass_data: Dict[str, Any], base_url: str,
                  smart_tap: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    text_modules = [
        _text_module("Program Information",
                     pass_data.get("description") or "Earn rewards with every purchase",
                     "program_info")
    ]
    if pass_data.get("customerServicePhone"):
        text_modules.append(_text_module("Customer Service", pass_data["customerServicePhone"], "customer_service"))

    payload = _compact({
        "id": class_id,
        "issuerName": pass_data.get("title") or pass_data.get("programName"),
        "programName": pass_data.get("programName") or pass_data.get("title"),
        "reviewStatus": "UNDER_REVIEW",
        "programLogo": _image(_absolute_url(pass_data.get("logo"), base_url), "Program Logo"),
        "hexBackgroundColor": pass_data.get("backgroundColor") or pass_data.get("brandColor") or "#000000",
        "heroImage": _image(_absolute_url(pass_data.get("backgroundImage"), base_url), "Program Background"),
        "locations": [],
        "textModulesData": text_modules,
        "linksModuleData": {
            "uris": [{"uri": pass_data["programWebsite"], "description": "Program Website", "id": "program_website"}]
        } if pass_data.get("programWebsite") else None,
        "allowMultipleUsersPerObject": False,
    })

    if smart_tap and smart_tap.get("merchantIds"):
        payload["enableSmartTap"] = True
        payload["smartTapRedemptionValue"] = smart_tap.get("redemptionValue") or "1"
        payload["merchantIds"] = smart_tap["merchantIds"]
    return payload


def gift_card_class(class_id: str, pass_data: Dict[str, Any], base_url: str,
                    smart_tap: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = _compact({
        "id": class_id,
        "issuerName": pass_data.get("title") or pass_data.get("programName"),
        "merchantName": pass_data.get("title"),
        "reviewStatus": "UNDER_REVIEW",
        "merchantLogo": _image(_absolute_url(pass_data.get("logo"), base_url)),
        "hexBackgroundColor": pass_data.get("backgroundColor") or "#000000",
    })
    if smart_tap and smart_tap.get("merchantIds"):
        payload["enableSmartTap"] = True
        payload["merchantIds"] = smart_tap["merchantIds"]
    return payload


def offer_class(class_id: str, pass_data: Dict[str, Any], base_url: str,
                smart_tap: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    payload = _compact({
        "id": class_id,
        "issuerName": pass_data.get("title") or pass_data.get("programName"),
        "title": pass_data.get("title"),
        "provider": pass_data.get("title"),
        "reviewStatus": "UNDER_REVIEW",
        "redemptionChannel": "BOTH",
        "titleImage": _image(_absolute_url(pass_data.get("logo"), base_url)),
        "hexBackgroundColor": pass_data.get("brandColor") or "#000000",
        "details": pass_data.get("redemptionInstructions"),
    })
    if smart_tap and smart_tap.get("merchantIds"):
        payload["enableSmartTap"] = True
        payload["merchantIds"] = smart_tap["merchantIds"]
        payload["redemptionIssuers"] = smart_tap.get("redemptionIssuers") or []
    return payload


def generic_class(class_id: str, pass_data: Dict[str, Any], base_url: str,
                  smart_tap: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    uris = []
    if pass_data.get("website"):
        uris.append({"uri": pass_data["website"], "description": "Visit Website", "id": "website"})
    if pass_data.get("supportUrl"):
        uris.append({"uri": pass_data["supportUrl"], "description": "Support", "id": "support"})

    return _compact({
        "id": class_id,
        "issuerName": pass_data.get("title") or pass_data.get("programName"),
        "reviewStatus": "UNDER_REVIEW",
        "logo": _image(_absolute_url(pass_data.get("logo"), base_url), "Pass logo"),
        "hexBackgroundColor": pass_data.get("brandColor") or "#4285F4",
        "multipleDevicesAndHoldersAllowedStatus": "ONE_USER_ALL_DEVICES",
        "textModulesData": [
            _text_module("About", pass_data.get("description") or "Digital pass", "about"),
            _text_module("Program Details",
                         pass_data.get("programDetails") or "Exclusive access and benefits for members",
                         "program_details"),
        ],
        "linksModuleData": {"uris": uris} if uris else None,
        "securityAnimation": {"animationType": "FOIL_SHIMMER"},
    })


# Objects

def _tier_progress(pass_data: Dict[str, Any]) -> Tuple[int, int, int]:
    current = _int(pass_data.get("pointsBalance"))
    needed = _int(pass_data.get("pointsToNextTier"))
    progress = round(current / (current + needed) * 100) if current + needed > 0 else 0
    return current, needed, progress


def loyalty_object(obj_id: str, class_id: str, pass_data: Dict[str, Any], timestamp_ms: int) -> Dict[str, Any]:
    points_label = pass_data.get("pointsLabel") or "points"
    text_modules = []

    if pass_data.get("tier"):
        text_modules.append(_text_module("Current Tier", str(pass_data["tier"]).upper(), "current_tier"))

    if pass_data.get("pointsForReward") and pass_data.get("rewardDescription"):
        text_modules.append(_text_module(
            "Reward Available",
            f"Earn {pass_data['pointsForReward']} {points_label} for {pass_data['rewardDescription']}",
            "reward_info",
        ))

    if pass_data.get("nextTier") and pass_data.get("pointsToNextTier"):
        _, needed, progress = _tier_progress(pass_data)
        text_modules.append(_text_module(
            "Next Tier Progress",
            f"{progress}% to {pass_data['nextTier']} tier. You need {needed} more {points_label} "
            f"to reach the next level.",
            "tier_progress",
        ))

    issued = pass_data.get("issueDate") or pass_data.get("memberSince")
    if issued:
        text_modules.append(_text_module("Member Since", str(issued)[:10], "issue_date"))

    if pass_data.get("nearestLocation"):
        location = pass_data["nearestLocation"]
        if pass_data.get("distanceToNearest"):
            location = f"{location} ({pass_data['distanceToNearest']})"
        text_modules.append(_text_module("Nearest Store", location, "nearest_location"))

    if pass_data.get("description"):
        text_modules.append(_text_module("About This Program", pass_data["description"], "program_description"))

    if pass_data.get("customerServicePhone"):
        text_modules.append(_text_module("Customer Service", pass_data["customerServicePhone"], "customer_service"))

    payload: Dict[str, Any] = {
        "id": obj_id,
        "classId": class_id,
        "state": "ACTIVE",
        "loyaltyPoints": {
            "label": pass_data.get("pointsLabel") or "Points",
            "balance": {"int": _int(pass_data.get("pointsBalance"))},
        },
        "accountName": pass_data.get("programName") or pass_data.get("title") or "Valued Member",
        "accountId": f"MEMBER{str(timestamp_ms)[-8:]}",
        "textModulesData": text_modules,
        "barcode": {
            "type": pass_data.get("barcodeType") or "QR_CODE",
            "value": pass_data.get("barcodeValue") or obj_id,
            "alternateText": pass_data.get("barcodeAltText") or pass_data.get("title") or obj_id.split(".")[-1],
        },
    }

    expires = pass_data.get("expirationDate") or pass_data.get("membershipExpiry")
    if expires:
        payload["validTimeInterval"] = {"end": {"date": expires}}
        if pass_data.get("issueDate"):
            payload["validTimeInterval"]["start"] = {"date": pass_data["issueDate"]}

    if pass_data.get("nextTier") and pass_data.get("pointsToNextTier"):
        payload["secondaryLoyaltyPoints"] = {
            "label": f"Progress to {pass_data['nextTier']}",
            "balance": {"int": _int(pass_data.get("pointsBalance"))},
        }
    return payload


def gift_card_object(obj_id: str, class_id: str, pass_data: Dict[str, Any], timestamp_ms: int) -> Dict[str, Any]:
    text_modules = []

    gift_from = pass_data.get("purchasedBy") or pass_data.get("giftFrom")
    if gift_from:
        text_modules.append(_text_module("Gift From", gift_from, "gift_from"))
    gift_to = pass_data.get("recipientName") or pass_data.get("giftTo")
    if gift_to:
        text_modules.append(_text_module("Gift To", gift_to, "gift_to"))

    text_modules.append(_text_module(
        "How to Use",
        pass_data.get("usageInstructions")
        or "Present this gift card at checkout. Can be used for online and in-store purchases. "
           "Remaining balance will be preserved for future use.",
        "usage_instructions",
    ))

    locations = pass_data.get("storeLocations") or pass_data.get("validLocations")
    if locations:
        text_modules.append(_text_module("Valid At", locations, "valid_locations"))

    text_modules.append(_text_module(
        "Terms & Conditions",
        pass_data.get("terms") or pass_data.get("termsConditions")
        or "Gift card cannot be redeemed for cash. No fees apply. "
           "Treat as cash - not responsible if lost or stolen. "
           "Check balance online or at any location.",
        "terms",
    ))

    if pass_data.get("balanceCheckUrl") or pass_data.get("customerService"):
        text_modules.append(_text_module(
            "Check Balance",
            pass_data.get("balanceCheckInfo")
            or f"Visit {pass_data.get('balanceCheckUrl') or 'our website'} or call "
               f"{pass_data.get('customerService') or 'customer service'} to check your balance",
            "balance_check",
        ))

    if pass_data.get("purchaseDate"):
        text_modules.append(_text_module("Purchased On", pass_data["purchaseDate"], "purchase_date"))

    message = pass_data.get("personalMessage") or pass_data.get("giftMessage")
    if message:
        text_modules.append(_text_module("Personal Message", message, "personal_message"))

    try:
        balance = float(pass_data.get("balance") or 25.0)
    except (TypeError, ValueError):
        balance = 25.0

    card_number = pass_data.get("cardNumber") or f"GC{str(timestamp_ms)[-8:]}"
    payload: Dict[str, Any] = _compact({
        "id": obj_id,
        "classId": class_id,
        "state": "ACTIVE",
        "cardNumber": card_number,
        "balance": {
            "micros": str(int(round(balance * 1_000_000))),
            "currencyCode": pass_data.get("currencyCode") or "USD",
        },
        "pin": pass_data.get("pin"),
        "textModulesData": text_modules,
    })

    expires = pass_data.get("expirationDate") or pass_data.get("validUntil")
    if expires:
        payload["eventDateTime"] = {"date": expires}

    if pass_data.get("barcodeValue") or pass_data.get("cardNumber"):
        payload["barcode"] = {
            "type": pass_data.get("barcodeType") or "CODE_128",
            "value": pass_data.get("barcodeValue") or pass_data.get("cardNumber"),
            "alternateText": pass_data.get("cardNumber") or "Gift Card Number",
        }

    if pass_data.get("validFrom") or expires:
        interval: Dict[str, Any] = {}
        if pass_data.get("validFrom"):
            interval["start"] = {"date": pass_data["validFrom"]}
        if expires:
            interval["end"] = {"date": expires}
        payload["validTimeInterval"] = interval
    return payload


def offer_object(obj_id: str, class_id: str, pass_data: Dict[str, Any], timestamp_ms: int) -> Dict[str, Any]:
    provided_code = pass_data.get("offerCode") or pass_data.get("promoCode") or pass_data.get("couponCode")
    offer_code = provided_code or f"SAVE{secrets.token_hex(3).upper()}"
    if not provided_code:
        logger.info(f"Generated offer code: {offer_code}")

    text_modules = [_text_module("Offer Code", offer_code.upper(), "offer_code")]

    if pass_data.get("discountPercent"):
        text_modules.append(_text_module("Discount", f"{pass_data['discountPercent']}% OFF", "discount_info"))
    elif pass_data.get("discountAmount"):
        text_modules.append(_text_module("Discount", f"${pass_data['discountAmount']} OFF", "discount_info"))
    elif pass_data.get("savings"):
        text_modules.append(_text_module("Discount", pass_data["savings"], "discount_info"))

    minimum = pass_data.get("minimumPurchase") or pass_data.get("minSpend")
    if minimum:
        text_modules.append(_text_module("Minimum Purchase", f"${minimum} minimum required", "minimum_purchase"))

    text_modules.append(_text_module(
        "How to Redeem",
        pass_data.get("redemptionInstructions") or pass_data.get("howToUse")
        or "Present this offer at checkout or enter the offer code online. "
           "Cannot be combined with other offers. Valid for one-time use only.",
        "redemption_instructions",
    ))

    locations = pass_data.get("validLocations") or pass_data.get("storeLocations") or pass_data.get("applicableStores")
    if locations:
        text_modules.append(_text_module("Valid At", locations, "valid_locations"))

    if pass_data.get("productRestrictions"):
        text_modules.append(_text_module("Product Details", pass_data["productRestrictions"], "product_restrictions"))
    elif pass_data.get("excludedItems"):
        text_modules.append(_text_module("Product Details", f"Excludes: {pass_data['excludedItems']}",
                                         "product_restrictions"))
    elif pass_data.get("applicableProducts"):
        text_modules.append(_text_module("Product Details", f"Valid on: {pass_data['applicableProducts']}",
                                         "product_restrictions"))

    expires = pass_data.get("expiryDate") or pass_data.get("validUntil")
    if expires:
        text_modules.append(_text_module("Expires", expires, "expiry_date"))

    text_modules.append(_text_module(
        "Terms & Conditions",
        pass_data.get("terms") or pass_data.get("termsConditions")
        or "Offer valid for one-time use. Cannot be combined with other promotions. "
           "No cash value. Void if copied, transferred, or modified. "
           "Subject to availability and merchant terms.",
        "terms",
    ))

    contact = pass_data.get("customerService") or pass_data.get("supportContact")
    if contact:
        text_modules.append(_text_module("Questions?", f"Contact us: {contact}", "customer_service"))

    payload: Dict[str, Any] = {
        "id": obj_id,
        "classId": class_id,
        "state": "ACTIVE",
        "textModulesData": text_modules,
    }

    if pass_data.get("validFrom") or expires:
        interval: Dict[str, Any] = {}
        if pass_data.get("validFrom"):
            interval["start"] = {"date": format_wallet_date(pass_data["validFrom"])}
        if expires:
            interval["end"] = {"date": format_wallet_date(expires)}
        payload["validTimeInterval"] = interval

    if pass_data.get("barcodeValue") or pass_data.get("offerCode"):
        payload["barcode"] = {
            "type": pass_data.get("barcodeType") or "CODE_128",
            "value": pass_data.get("barcodeValue") or pass_data.get("offerCode"),
            "alternateText": pass_data.get("offerCode") or pass_data.get("promoCode") or "Offer Code",
        }

    if pass_data.get("usageLimit") or pass_data.get("singleUse"):
        payload["usageRestriction"] = "ONE_TIME_USE" if pass_data.get("singleUse") else "MULTIPLE_USE"
    return payload


def generic_object(obj_id: str, class_id: str, pass_data: Dict[str, Any], timestamp_ms: int,
                   base_url: str = "") -> Dict[str, Any]:
    title = pass_data.get("title") or "Digital Pass"
    text_modules = [
        _text_module("Description", pass_data.get("description") or "Your gateway to exclusive access and benefits.",
                     "description"),
        _text_module("Pass ID", obj_id.split(".")[-1], "pass_id"),
    ]

    if pass_data.get("eventDate") or pass_data.get("eventTime"):
        details = []
        if pass_data.get("eventDate"):
            details.append(f"Date: {pass_data['eventDate']}")
        if pass_data.get("eventTime"):
            details.append(f"Time: {pass_data['eventTime']}")
        if pass_data.get("venue"):
            details.append(f"Venue: {pass_data['venue']}")
        text_modules.append(_text_module("Event Details", "\n".join(details), "event_details"))

    if pass_data.get("location") or pass_data.get("address"):
        text_modules.append(_text_module("Location", pass_data.get("address") or pass_data["location"], "location"))

    if pass_data.get("validUntil") or pass_data.get("expiryDate"):
        text_modules.append(_text_module("Valid Until", pass_data.get("validUntil") or pass_data["expiryDate"],
                                         "validity"))

    if pass_data.get("instructions") or pass_data.get("notes"):
        text_modules.append(_text_module("Instructions", pass_data.get("instructions") or pass_data["notes"],
                                         "instructions"))

    contact = []
    if pass_data.get("phone"):
        contact.append(f"Phone: {pass_data['phone']}")
    if pass_data.get("email"):
        contact.append(f"Email: {pass_data['email']}")
    if pass_data.get("contactInfo") and not contact:
        contact.append(pass_data["contactInfo"])
    if contact:
        text_modules.append(_text_module("Contact", "\n".join(contact), "contact"))

    if pass_data.get("terms") or pass_data.get("termsAndConditions"):
        text_modules.append(_text_module("Terms & Conditions",
                                         pass_data.get("terms") or pass_data["termsAndConditions"], "terms"))

    uris = []
    if pass_data.get("website"):
        uris.append({"uri": pass_data["website"], "description": "Learn More", "id": "website_link"})
    if pass_data.get("supportUrl"):
        uris.append({"uri": pass_data["supportUrl"], "description": "Support", "id": "support_link"})

    subheader = pass_data.get("subtitle") or (pass_data.get("description") or "")[:100]
    hero = _absolute_url(pass_data.get("heroImage") or pass_data.get("logo"), base_url)

    payload: Dict[str, Any] = _compact({
        "id": obj_id,
        "classId": class_id,
        "state": "ACTIVE",
        "cardTitle": _localized(title),
        "header": _localized(title),
        "subheader": _localized(subheader) if subheader else None,
        "genericType": "GENERIC_TYPE_UNSPECIFIED",
        "heroImage": _image(hero, "Pass hero image"),
        "logo": _image(_absolute_url(pass_data.get("logo"), base_url), "Pass logo"),
        "hexBackgroundColor": pass_data.get("brandColor") or "#4285F4",
        "textModulesData": text_modules,
        "linksModuleData": {"uris": uris} if uris else None,
        "barcode": {
            "type": "QR_CODE",
            "value": pass_data.get("barcodeValue") or obj_id,
            "alternateText": pass_data.get("barcodeAltText") or pass_data.get("title") or obj_id.split(".")[-1],
        },
    })

    if pass_data.get("validFrom") or pass_data.get("validUntil") or pass_data.get("eventDate"):
        interval: Dict[str, Any] = {}
        if pass_data.get("validFrom"):
            interval["start"] = {"date": pass_data["validFrom"]}
        end = pass_data.get("validUntil") or pass_data.get("eventDate")
        if end:
            interval["end"] = {"date": end}
        payload["validTimeInterval"] = interval

    if pass_data.get("latitude") and pass_data.get("longitude"):
        try:
            payload["locations"] = [{
                "latitude": float(pass_data["latitude"]),
                "longitude": float(pass_data["longitude"]),
            }]
        except (TypeError, ValueError):
            logger.warning(f"Ignoring invalid coordinates for {obj_id}")
    return payload


def build_payloads(pass_type: str, class_id: str, obj_id: str, pass_data: Dict[str, Any],
                   timestamp_ms: int, base_url: str,
                   smart_tap: Optional[Dict[str, Any]] = None) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Build the (class, object) payload pair for one pass type."""
    if pass_type == "loyalty":
        return (loyalty_class(class_id, pass_data, base_url, smart_tap),
                loyalty_object(obj_id, class_id, pass_data, timestamp_ms))
    if pass_type == "gift-card":
        return (gift_card_class(class_id, pass_data, base_url, smart_tap),
                gift_card_object(obj_id, class_id, pass_data, timestamp_ms))
    if pass_type == "offer":
        return (offer_class(class_id, pass_data, base_url, smart_tap),
                offer_object(obj_id, class_id, pass_data, timestamp_ms))
    if pass_type == "generic":
        return (generic_class(class_id, pass_data, base_url),
                generic_object(obj_id, class_id, pass_data, timestamp_ms, base_url))
    raise ValueError(f"Unsupported pass type: {pass_type}")
