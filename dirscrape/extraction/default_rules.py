"""Default rule table for Yellowpages-style business detail pages.

Rule order is column order: the fields a run discovers first appear in the
order listed here. Groups of related rules follow the layout of a typical
detail page (identity, contact, ratings, details, reviews, media, location).
"""

from __future__ import annotations

from dirscrape.common.page_element import PageElement
from dirscrape.data_types import Value
from dirscrape.extraction import transforms
from dirscrape.extraction.rules import (
    CoordinatesRule,
    GroupAttribute,
    GroupRule,
    PhotoGroupRule,
    Rule,
    RuleTable,
    attribute,
    class_token,
    count_text,
    dash_rating,
    flag,
    hours,
    joined,
    phone,
    social,
    text,
)

REVIEW_CAP = 10
PHOTO_CAP = 20
SUB_GALLERY_CAP = 10

REVIEW_ITEMS = ".review, .testimonial, #reviews article, #ta-reviews-container article"
PHOTO_ITEMS = (
    ".media-thumbnail.collage-pic, .photos img, .gallery img, "
    ".business-photos img, .image-gallery img"
)
SOCIAL_LINKS = (
    'a[href*="facebook"], a[href*="twitter"], '
    'a[href*="instagram"], a[href*="linkedin"]'
)


def _child_text(selector: str):
    def read(review: PageElement) -> Value:
        return transforms.first_text(
            review.query_css(selector, selector, min_count=0)
        )

    return read


def _review_rating(review: PageElement) -> Value:
    stars = review.query_css(
        ".rating, .review-rating, .stars, .ta-rating", "review rating", min_count=0
    )
    return transforms.review_stars(stars[0]) if stars else None


def _review_verified(review: PageElement) -> Value:
    return bool(
        review.query_css(
            ".verified-badge, .verified-review", "verified review", min_count=0
        )
    )


def _review_platform(review: PageElement) -> Value:
    named = transforms.first_text(
        review.query_css(".platform, .source", "review platform", min_count=0)
    )
    if named:
        return named
    in_tripadvisor = review.query_xpath(
        "ancestor::*[@id='ta-reviews-container']",
        "TripAdvisor reviews container",
        min_count=0,
    )
    return "TripAdvisor" if in_tripadvisor else None


def _review_avatar(review: PageElement) -> Value:
    images = review.query_css("img", "reviewer avatar", min_count=0)
    return transforms.attribute_value(images[0], "src") if images else None


REVIEW_ATTRIBUTES: tuple[GroupAttribute, ...] = (
    GroupAttribute(
        "author", _child_text(".author, .review-author, .customer-name, .name")
    ),
    GroupAttribute("rating", _review_rating),
    GroupAttribute(
        "date", _child_text(".date, .review-date, .post-date, .date-posted")
    ),
    GroupAttribute(
        "text",
        _child_text(
            ".text, .content, .review-text, .review-content, .review-response p"
        ),
    ),
    GroupAttribute(
        "title",
        _child_text(
            ".title, .review-title, .review-heading, .review-response header"
        ),
    ),
    GroupAttribute(
        "helpful", _child_text(".helpful, .review-helpful, .thumbs-up")
    ),
    GroupAttribute(
        "response",
        _child_text(".response, .review-response, .business-response"),
    ),
    GroupAttribute("verified", _review_verified),
    GroupAttribute("platform", _review_platform),
    GroupAttribute("location", _child_text(".location")),
    GroupAttribute("avatar", _review_avatar),
)


def _sub_gallery(prefix: str, label: str, section: str) -> PhotoGroupRule:
    return PhotoGroupRule(
        prefix=prefix,
        label=label,
        item_selector=f"{section} .media-thumbnail.collage-pic, {section} img",
        cap=SUB_GALLERY_CAP,
        detect_selector=section,
    )


DEFAULT_RULES: tuple[Rule, ...] = (
    # Business name variants
    text("businessName", "h1"),
    text("businessNameAlt", ".business-name"),
    text("businessTitle", ".business-title"),
    text("companyName", ".company-name"),
    # Contact
    phone("phone", ".phone", ".phones"),
    text("address", ".address", ".adr"),
    attribute("website", 'a[href*="http"]:not([href*="yellowpages.com"])'),
    text("contactInfo", ".contact-info"),
    phone("phoneNumber", ".phone-number"),
    phone("businessPhone", ".business-phone"),
    # Categories
    joined("categories", ".categories a, .category a"),
    text("businessCategories", ".business-categories"),
    text("serviceCategories", ".service-categories"),
    # Ratings
    class_token("ypRating", ".result-rating"),
    count_text("ypRatingCount", ".rating-count"),
    dash_rating("taRating", ".ta-rating"),
    count_text("taRatingCount", ".ta-count"),
    text("googleRating", ".google-rating"),
    text("facebookRating", ".facebook-rating"),
    text("yelpRating", ".yelp-rating"),
    # Business details
    text(
        "yearsInBusiness",
        ".years-in-business .count strong",
        detect=".years-in-business",
    ),
    text("priceRange", ".price-range"),
    text("hours", ".hours", ".business-hours"),
    text("established", ".established"),
    text("founded", ".founded"),
    text("inBusinessSince", ".in-business-since"),
    # Services and features
    joined("services", ".services li, .amenities li"),
    joined("paymentMethods", ".payment-methods li, .payment li"),
    joined("features", ".features li, .highlights li"),
    text("specialties", ".specialties"),
    text("servicesOffered", ".services-offered"),
    text("amenities", ".amenities"),
    text("facilities", ".facilities"),
    # Description
    text("description", ".description", ".about"),
    text("businessDescription", ".business-description"),
    text("companyDescription", ".company-description"),
    text("aboutUs", ".about-us"),
    # Social media
    social("socialMedia", SOCIAL_LINKS),
    text("socialLinks", ".social-links"),
    text("socialMediaLinks", ".social-media"),
    # Action links
    attribute("directionsLink", 'a[href*="directions"]'),
    attribute("reviewsLink", 'a[href*="reviews"]'),
    attribute("websiteLink", 'a[href*="website"]'),
    attribute("menuLink", 'a[href*="menu"]'),
    attribute("orderOnlineLink", 'a[href*="order"]'),
    attribute("quoteLink", 'a[href*="quote"]'),
    attribute("contactLink", 'a[href*="contact"]'),
    attribute("appointmentLink", 'a[href*="appointment"]'),
    # Status
    text("claimed", ".claimed-status"),
    flag("verified", ".verified-badge"),
    text("businessStatus", ".business-status"),
    text("listingStatus", ".listing-status"),
    # Additional contact
    attribute("email", 'a[href^="mailto:"]', strip_prefix="mailto:"),
    text("fax", ".fax"),
    text("emailAddress", ".email"),
    text("contactEmail", ".contact-email"),
    # Trade and cuisine specifics
    text("cuisine", ".cuisine"),
    flag("delivery", ".delivery"),
    flag("takeout", ".takeout"),
    flag("dineIn", ".dine-in"),
    flag("acceptsInsurance", ".insurance"),
    text("certifications", ".certifications"),
    text("warranty", ".warranty"),
    text("practiceAreas", ".practice-areas"),
    text("consultation", ".consultation"),
    flag("licensed", ".licensed"),
    flag("bonded", ".bonded"),
    flag("insured", ".insured"),
    flag("accredited", ".accredited"),
    text("memberships", ".memberships"),
    text("associations", ".associations"),
    # Reviews
    GroupRule(
        prefix="review",
        label="Reviews",
        item_selector=REVIEW_ITEMS,
        attributes=REVIEW_ATTRIBUTES,
        cap=REVIEW_CAP,
    ),
    text("customerReviews", ".customer-reviews"),
    text("reviewSection", ".review-section"),
    text("reviewsContainer", ".reviews-container"),
    text("reviewItems", ".review-item"),
    text("reviewAuthors", ".review-author"),
    text("reviewDates", ".review-date"),
    text("reviewRatings", ".review-rating"),
    text("reviewTexts", ".review-text"),
    text("reviewTitles", ".review-title"),
    text("reviewHelpful", ".review-helpful"),
    text("reviewResponses", ".review-response"),
    text("reviewsSection", "#reviews"),
    text("tripAdvisorReviews", "#ta-reviews-container"),
    text("tripAdvisorTab", ".ta-tab"),
    # Photos
    PhotoGroupRule(
        prefix="photo",
        label="Photos",
        item_selector=PHOTO_ITEMS,
        cap=PHOTO_CAP,
    ),
    _sub_gallery("businessPhoto", "BusinessPhotos", ".business-photos"),
    _sub_gallery("galleryImage", "GalleryImages", ".image-gallery"),
    _sub_gallery("galleryPhoto", "GalleryPhotos", ".photo-gallery"),
    _sub_gallery("carouselPhoto", "CarouselPhotos", ".carousel"),
    _sub_gallery("collagePhoto", "CollagePhotos", ".collage-item"),
    # Hours
    hours(
        "detailedHours",
        ".hours .day, .business-hours .day, .operating-hours .day",
        detect=".hours .day, .business-hours .day",
    ),
    text("operatingHours", ".operating-hours"),
    text("businessHours", ".business-hours"),
    text("hoursOfOperation", ".hours-of-operation"),
    # Location
    CoordinatesRule(),
    text("location", ".location"),
    text("coordinates", ".coordinates"),
    text("neighborhood", ".neighborhood"),
    text("areaServed", ".area-served"),
    text("serviceArea", ".service-area"),
    # Listing ids
    attribute("businessId", "[data-ypid]", name="data-ypid"),
    attribute("listingId", "[data-listing-id]", name="data-listing-id"),
    attribute("dataBusinessId", "[data-business-id]", name="data-business-id"),
    attribute("dataCompanyId", "[data-company-id]", name="data-company-id"),
    # Company profile and facilities
    text("employees", ".employees"),
    text("companySize", ".company-size"),
    text("annualRevenue", ".annual-revenue"),
    text("languages", ".languages"),
    text("languagesSpoken", ".languages-spoken"),
    text("accessibility", ".accessibility"),
    flag("wheelchairAccessible", ".wheelchair-accessible"),
    text("parking", ".parking"),
    flag("freeParking", ".free-parking"),
    flag("wifi", ".wifi"),
    flag("freeWifi", ".free-wifi"),
    # Payment and pricing
    text("paymentOptions", ".payment-options"),
    text("creditCards", ".credit-cards"),
    flag("cashOnly", ".cash-only"),
    text("pricing", ".pricing"),
    text("rates", ".rates"),
    text("priceList", ".price-list"),
    text("servicePrices", ".service-prices"),
    # Emergency service
    flag("emergency", ".emergency"),
    flag(
        "twentyFourHour",
        '[class*="24-hour"], [class*="24hr"], .twenty-four-hour',
    ),
    flag("afterHours", ".after-hours"),
    flag("emergencyService", ".emergency-service"),
    # Certifications and awards
    text("awards", ".awards"),
    text("certificationsList", ".certifications-list"),
    text("accreditations", ".accreditations"),
    text("recognitions", ".recognitions"),
    text("badges", ".badges"),
    # Call-to-action buttons
    attribute("callButton", ".call-button"),
    attribute("textButton", ".text-button"),
    attribute("emailButton", ".email-button"),
    attribute("chatButton", ".chat-button"),
    attribute("onlineBooking", ".online-booking"),
    attribute("appointmentScheduler", ".appointment-scheduler"),
)


def default_rule_table(generic_sections: bool = False) -> RuleTable:
    """Rule table for Yellowpages-style detail pages.

    Args:
        generic_sections: Also capture every identifiable page section as
            a ``<name>Section`` field.
    """
    return RuleTable(DEFAULT_RULES).with_generic_sections(generic_sections)
