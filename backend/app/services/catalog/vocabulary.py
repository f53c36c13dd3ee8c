"""Closed vocabularies for brand, body type and transmission matching.

Catalog stores brands under their Latin names (``Toyota``, ``BMW``) and body
types under Russian labels (``Седан``, ``Внедорожник 5 дв.``), so every
keyword here maps to the value the catalog search expects.
"""
from __future__ import annotations

from typing import Dict, List, Tuple

BRAND_ALIASES: Dict[str, str] = {
    # Japanese
    "тойота": "Toyota",
    "хонда": "Honda",
    "ниссан": "Nissan",
    "мазда": "Mazda",
    "субару": "Subaru",
    "мицубиси": "Mitsubishi",
    "митсубиши": "Mitsubishi",
    "сузуки": "Suzuki",
    "лексус": "Lexus",
    "инфинити": "Infiniti",
    "акура": "Acura",
    "дайхатсу": "Daihatsu",
    "исузу": "Isuzu",
    # German
    "бмв": "BMW",
    "мерседес": "Mercedes-Benz",
    "мерс": "Mercedes-Benz",
    "ауди": "Audi",
    "фольксваген": "Volkswagen",
    "порше": "Porsche",
    "опель": "Opel",
    # Korean
    "хендай": "Hyundai",
    "хюндай": "Hyundai",
    "хёндэ": "Hyundai",
    "хендэ": "Hyundai",
    "киа": "Kia",
    "санг йонг": "SsangYong",
    "ссангйонг": "SsangYong",
    # American
    "форд": "Ford",
    "шевроле": "Chevrolet",
    "шеви": "Chevrolet",
    "кадиллак": "Cadillac",
    "крайслер": "Chrysler",
    "джип": "Jeep",
    "додж": "Dodge",
    "тесла": "Tesla",
    "линкольн": "Lincoln",
    "бьюик": "Buick",
    "понтиак": "Pontiac",
    # French
    "рено": "Renault",
    "пежо": "Peugeot",
    "ситроен": "Citroen",
    # Italian
    "фиат": "Fiat",
    "альфа ромео": "Alfa Romeo",
    "феррари": "Ferrari",
    "ламборгини": "Lamborghini",
    "мазерати": "Maserati",
    # Russian
    "лада": "LADA",
    "ваз": "LADA",
    "уаз": "UAZ",
    "газ": "GAZ",
    # Chinese
    "чери": "Chery",
    "хавал": "Haval",
    "хавейл": "Haval",
    "джили": "Geely",
    "чанган": "Changan",
    "грейт волл": "Great Wall",
    # British
    "ленд ровер": "Land Rover",
    "лэнд ровер": "Land Rover",
    "ягуар": "Jaguar",
    "бентли": "Bentley",
    "роллс ройс": "Rolls-Royce",
    "роллс-ройс": "Rolls-Royce",
    "мини": "MINI",
    "астон мартин": "Aston Martin",
    # Swedish
    "вольво": "Volvo",
    "сааб": "Saab",
}

LATIN_BRANDS: Tuple[str, ...] = (
    "Land Rover", "Alfa Romeo", "Aston Martin", "Rolls-Royce", "Great Wall",
    "Mercedes-Benz", "SsangYong",
    "Toyota", "Honda", "Nissan", "BMW", "Mercedes", "Audi", "Volkswagen",
    "Hyundai", "Kia", "Ford", "Chevrolet", "Mazda", "Subaru", "Lexus",
    "Porsche", "Volvo", "Skoda", "Renault", "Peugeot", "Jeep",
    "Jaguar", "Tesla", "Mitsubishi", "Suzuki",
    "Chery", "Haval", "Geely", "LADA", "UAZ",
    "Dodge", "Chrysler", "Cadillac", "Buick", "Lincoln",
    "Fiat", "Ferrari", "Lamborghini", "Maserati",
    "Bentley", "MINI", "Saab",
    "Opel", "Citroen", "Infiniti", "Acura",
    "AMC", "Pontiac", "Oldsmobile", "Plymouth", "Daihatsu", "Isuzu",
    "Seat", "Dacia", "Lancia", "Rover", "MG",
)

BODY_TYPE_KEYWORDS: Dict[str, str] = {
    "седан": "Седан",
    "хэтчбек": "Хэтчбек",
    "хетчбек": "Хэтчбек",
    "хетчбэк": "Хэтчбек",
    "внедорожник": "Внедорожник",
    "кроссовер": "Внедорожник",
    "паркетник": "Внедорожник",
    "купе": "Купе",
    "купэ": "Купе",
    "универсал": "Универсал",
    "минивэн": "Минивэн",
    "минивен": "Минивэн",
    "пикап": "Пикап",
    "кабриолет": "Кабриолет",
    "лифтбек": "Лифтбек",
    "лифтбэк": "Лифтбек",
    "sedan": "Седан",
    "hatchback": "Хэтчбек",
    "suv": "Внедорожник",
    "coupe": "Купе",
    "wagon": "Универсал",
    "minivan": "Минивэн",
    "pickup": "Пикап",
    "cabriolet": "Кабриолет",
    "liftback": "Лифтбек",
}

# LLM-declared preferences use English labels; catalog matching needs the Russian ones.
BODY_TYPE_EN_TO_DB: Dict[str, str] = {
    "sedan": "Седан",
    "hatchback": "Хэтчбек",
    "suv": "Внедорожник",
    "coupe": "Купе",
    "wagon": "Универсал",
    "minivan": "Минивэн",
    "pickup": "Пикап",
    "cabriolet": "Кабриолет",
    "liftback": "Лифтбек",
}

KPP_KEYWORDS: Dict[str, str] = {
    "автомат": "AT",
    "акпп": "AT",
    "автоматическая": "AT",
    "механика": "MT",
    "мкпп": "MT",
    "механическая": "MT",
    "ручная": "MT",
    "вариатор": "CVT",
    "робот": "Robot",
    "роботизированная": "Robot",
    "automatic": "AT",
    "manual": "MT",
    "cvt": "CVT",
}

STOP_WORDS = frozenset({
    # Pronouns & particles
    "этот", "этой", "этом", "этих", "этого", "этому",
    "свой", "свою", "своё", "своя", "своем", "своей", "своих", "своим",
    "который", "которая", "которое", "которую", "которых", "которой", "которого", "которым",
    "какой", "какая", "какое", "какую", "каких", "какие",
    "такой", "такая", "такое", "такие", "таких",
    "весь", "всех", "всем", "всего", "всей",
    "один", "одна", "одно", "одной", "одного",
    "себя", "себе", "собой",
    "него", "неё", "нему", "ними",
    # Verbs of asking / wanting
    "быть", "было", "была", "были", "будет", "будут",
    "есть", "нету", "стал", "стала", "стали",
    "может", "могу", "можно", "можешь",
    "знаешь", "знаете", "знаю",
    "хочу", "хочешь", "хотел", "хотела",
    "нужен", "нужна", "нужно", "нужны", "надо",
    "ищу", "ищем", "ищешь",
    "подбери", "подобрать", "подберите",
    "посоветуй", "посоветуйте", "расскажи", "расскажите",
    "покажи", "покажите", "скажи", "скажите",
    "получил", "получила", "получило", "получили",
    # Generic automotive nouns
    "машина", "машину", "машины", "машине", "машиной",
    "автомобиль", "автомобили", "автомобиля", "автомобилей", "автомобилю",
    "авто", "тачка", "тачку",
    "марка", "марку", "марки",
    "модель", "модели", "моделей",
    "класс", "класса", "классе", "классу",
    "года", "году", "годов", "годы",
    "бюджет", "бюджетом", "рублей", "тысяч", "миллиона", "миллионов",
    # Generic adjectives
    "лучший", "лучшая", "лучшее", "лучшую", "лучших", "лучшие", "лучшем",
    "хороший", "хорошая", "хорошее", "хороших", "хорошие",
    "самый", "самая", "самое", "самую", "самых", "самые",
    "новый", "новая", "новое", "новую", "новых", "новые",
    # Long prepositions & conjunctions
    "если", "либо", "тоже", "также", "чтобы", "потому", "более", "менее",
    "между", "через", "после", "перед", "около",
    # English
    "want", "need", "looking", "show", "tell", "about", "with", "that", "this",
    "what", "which", "have", "would", "could", "please",
    "cars", "vehicle", "vehicles", "model", "models", "brand", "year", "years",
})


def normalize_brand_name(name: str) -> str:
    """Map a Cyrillic alias to the catalog brand name; anything else is returned as given."""
    if not name:
        return name
    return BRAND_ALIASES.get(name.strip().lower(), name.strip())


def normalize_body_type(body_type: str) -> str:
    if not body_type:
        return body_type
    return BODY_TYPE_EN_TO_DB.get(body_type.strip().lower(), body_type.strip())


def sorted_by_length(values: List[str]) -> List[str]:
    return sorted(values, key=len, reverse=True)
