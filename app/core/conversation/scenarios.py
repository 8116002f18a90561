"""Scenario registry and definitions for roleplay sessions."""
from dataclasses import dataclass
from typing import Dict, List

CUSTOM_PRESET = "Custom"


@dataclass(frozen=True, slots=True)
class Scenario:
    """Definition of a roleplay scenario."""
    id: str
    title: str
    subtitle: str
    role_guide: str
    start_prompt: str


SCENARIOS: List[Scenario] = [
    Scenario("cafe", "Cafe", "Order a drink and a small item, then pay.",
             "Role: barista. Keep it brief and transactional. Focus on order details, size, milk, and payment.",
             "Start with a short, common barista opener in the target language."),
    Scenario("restaurant", "Restaurant", "Order a meal, ask about a dish, and close the check.",
             "Role: waiter. Be professional and concise. Offer menus or specials and confirm the order.",
             "Start with a standard waiter opener in the target language."),
    Scenario("bakery", "Bakery", "Pick two items and ask about ingredients.",
             "Role: bakery clerk. Keep it short, focus on items, quantities, and payment.",
             "Start with a short, friendly service opener in the target language."),
    Scenario("grocery", "Grocery Store", "Ask where something is and buy it.",
             "Role: store staff. Be helpful and direct. Focus on aisles, brands, and prices.",
             "Start with a simple offer of help in the target language."),
    Scenario("pharmacy", "Pharmacy", "Describe a symptom and ask for a basic remedy.",
             "Role: pharmacist. Be calm and concise. Ask about symptoms and allergies.",
             "Start with a short, professional greeting in the target language."),
    Scenario("hotel", "Hotel Check-in", "Check in, confirm details, and ask about breakfast.",
             "Role: front desk staff. Be polite and efficient. Confirm booking details.",
             "Start with a standard check-in greeting in the target language."),
    Scenario("airport", "Airport Check-in", "Check a bag and confirm your seat.",
             "Role: airline agent. Be direct and procedural. Ask about passport and baggage.",
             "Start with a short check-in question in the target language."),
    Scenario("customs", "Customs", "Answer travel purpose and duration.",
             "Role: customs officer. Be formal, brief, and direct. Ask about purpose and length of stay.",
             "Start with a direct customs question in the target language."),
    Scenario("taxi", "Taxi Ride", "Give a destination and clarify a route.",
             "Role: taxi driver. Be short and practical. Confirm destination and route.",
             "Start with a brief question about destination in the target language."),
    Scenario("train", "Train Station", "Buy a ticket and ask about the platform.",
             "Role: ticket clerk. Be quick and clear. Ask about destination and time.",
             "Start with a short ticket question in the target language."),
    Scenario("doctor", "Doctor Visit", "Describe symptoms and answer follow-up questions.",
             "Role: doctor. Be calm and concise. Ask about symptoms and duration.",
             "Start with a clinical opener like asking what brings them in."),
    Scenario("job", "Job Interview", "Answer a question about experience and skills.",
             "Role: interviewer. Be professional and structured. Ask clear questions.",
             "Start with a professional greeting and a first question."),
    Scenario("first-day", "First Day at Work", "Introduce yourself and ask a simple question.",
             "Role: coworker. Be friendly and brief. Ask about their role or tasks.",
             "Start with a short welcome in the target language."),
    Scenario("apartment", "Apartment Viewing", "Ask about rent, utilities, and move-in date.",
             "Role: landlord or agent. Be direct. Answer questions about costs and terms.",
             "Start with a brief greeting and offer to show the place."),
    Scenario("bank", "Bank", "Ask about opening an account and required documents.",
             "Role: bank teller. Be formal and concise. Ask for ID and requirements.",
             "Start with a standard service greeting in the target language."),
    Scenario("gym", "Gym", "Ask about memberships and opening hours.",
             "Role: front desk staff. Be brief and helpful. Provide membership details.",
             "Start with a short greeting and ask how you can help."),
    Scenario("salon", "Hair Salon", "Book a haircut and describe a style.",
             "Role: stylist or receptionist. Be friendly and concise. Ask about time and style.",
             "Start with a short greeting and ask what they want."),
    Scenario("post", "Post Office", "Send a package and ask about delivery time.",
             "Role: clerk. Be direct. Ask about destination, size, and speed.",
             "Start with a short service greeting in the target language."),
    Scenario("tech", "Tech Support", "Describe a device problem and follow steps.",
             "Role: support agent. Be clear and step-by-step. Ask for details.",
             "Start with a brief help offer in the target language."),
    Scenario("movie", "Cinema", "Buy a ticket and ask about showtimes.",
             "Role: ticket clerk. Be short and practical. Ask about time and seats.",
             "Start with a short ticket question in the target language."),
    Scenario("museum", "Museum", "Ask about tickets and a specific exhibit.",
             "Role: staff. Be polite and concise. Explain tickets and directions.",
             "Start with a simple greeting in the target language."),
    Scenario("market", "Farmers Market", "Ask about price and quantity, then buy.",
             "Role: vendor. Be friendly and short. Talk about price and freshness.",
             "Start with a simple greeting in the target language."),
    Scenario("dating", "Dating", "Introduce yourself and ask a light question.",
             "Role: date. Friendly, natural, and concise. Keep it light.",
             "Start with a friendly greeting and a simple question."),
    Scenario("family", "Family Gathering", "Introduce yourself and ask about someone.",
             "Role: family member. Warm but not too chatty. Ask a natural question.",
             "Start with a warm greeting tied to the gathering."),
    Scenario("school", "School", "Ask about homework and a class topic.",
             "Role: classmate. Casual and concise. Focus on school topics.",
             "Start with a short school-related opener."),
]

SCENARIO_REGISTRY: Dict[str, Scenario] = {s.id: s for s in SCENARIOS}
_SCENARIOS_BY_TITLE: Dict[str, Scenario] = {s.title.lower(): s for s in SCENARIOS}

# Built-in guides for the classic presets; these take priority over the catalog.
PRESET_ROLE_GUIDES: Dict[str, str] = {
    "Cafe": "Role: barista. Keep it brief and transactional. Open with the most common service line in the target language (not a literal translation). Ask about size, milk, and payment. Avoid small talk unless the user starts it.",
    "Restaurant": "Role: waiter. Keep it professional and concise. Open with a standard restaurant opener in the target language (not a literal translation). Offer menus or specials, confirm the order, and check on preferences.",
    "Store": "Role: shop clerk. Keep it short and helpful. Open with a standard help offer in the target language (not a literal translation). Focus on items, sizes, prices, and checkout.",
    "Family gathering": "Role: family member. Warm but not overly chatty. Start with a specific greeting tied to the gathering and ask a natural personal question.",
    "Small talk": "Role: casual acquaintance or stranger. Keep it light and brief. Use a simple opener and follow up with short, natural questions.",
    "Travel": "Role: local or travel staff. Be direct and helpful. Start by asking where the user needs to go or what help they need.",
    "Job interview": "Role: interviewer. Be professional and structured. Start with a standard opener and a first question about experience.",
    "Dating": "Role: date. Friendly, natural, and concise. Start with a brief greeting and a simple question to get to know them.",
    "School": "Role: classmate. Casual and concise. Start with a school-related opener and keep the tone friendly.",
    "Doctor": "Role: doctor. Calm and concise. Start with \"What brings you in today?\" and ask about symptoms.",
    "Airport and customs": "Role: customs officer. Direct and formal. Start with a question about purpose of travel and documents.",
}

PRESET_OPENINGS: Dict[str, str] = {
    "Cafe": "Start with the most common short barista opener in the target language. Example (translate): \"Hi, what can I get you?\"",
    "Restaurant": "Start with a standard waiter opener in the target language. Example (translate): \"Table for one or two?\" or \"Are you ready to order?\"",
    "Store": "Start with a standard shop clerk opener in the target language. Example (translate): \"Hi, can I help you find something?\"",
    "Family gathering": "Start with a warm, specific greeting tied to the gathering. Example (translate): \"Hey, glad you made it. How was the trip?\"",
    "Small talk": "Start with a light, casual opener. Example (translate): \"Hi. Busy day?\"",
    "Travel": "Start by offering help. Example (translate): \"Hi, where do you need to go?\"",
    "Job interview": "Start professionally. Example (translate): \"Thanks for coming in. Can you tell me about yourself?\"",
    "Dating": "Start with a friendly greeting. Example (translate): \"Hi, nice to meet you. How are you?\"",
    "School": "Start with a school-related opener. Example (translate): \"Hey, did you finish the assignment?\"",
    "Doctor": "Start with a clinical opener. Example (translate): \"What brings you in today?\"",
    "Airport and customs": "Start with a direct customs question. Example (translate): \"What is the purpose of your visit?\"",
}

GENERIC_OPENING = "Start with a realistic opener for the role implied by the scenario. Keep it brief."


def get_scenario(scenario_id: str) -> Scenario | None:
    """Retrieve a scenario by ID."""
    return SCENARIO_REGISTRY.get(scenario_id)


def find_scenario_by_title(title: str | None) -> Scenario | None:
    """Retrieve a catalog scenario by its display title (case-insensitive)."""
    if not title:
        return None
    return _SCENARIOS_BY_TITLE.get(title.strip().lower())


def list_scenarios() -> List[Scenario]:
    """List all available scenarios."""
    return list(SCENARIOS)
