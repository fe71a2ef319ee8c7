"""
Merchant Categorization.

Attaches a best-effort category label to a transaction from its
description. Rules are evaluated in order and the first match wins, so
more specific merchants (e.g. "UBER EATS") are listed before the generic
keyword that would also match them ("UBER").

Descriptions are upper-cased, stripped of accents and acquirer prefixes
("EC*", "MP*") and punctuation before matching. Each keyword is checked
against both the spaced form and a compact form without spaces, which
catches merchants printed as "SMARTFIT" or "SMART FIT" alike.
"""

import re
from typing import Callable, Iterable, List, Tuple, Union

from src.utils.text import strip_accents
from .models import TransactionType

DEFAULT_CATEGORY = "Outros"

_ACQUIRER_PREFIXES = [
    re.compile(r"\bEC\s*\*"),
    re.compile(r"\bMP\s*\*"),
    re.compile(r"\bMP\s+"),
]


def normalize_merchant(value: str) -> str:
    """
    Normalize a description for keyword matching.

    Example:
        >>> normalize_merchant("EC*Adidas Brasil")
        'ADIDAS BRASIL'
    """
    upper = strip_accents(value or "").upper()
    for prefix in _ACQUIRER_PREFIXES:
        upper = prefix.sub('', upper)
    upper = re.sub(r"[^A-Z0-9 ]", ' ', upper)
    return re.sub(r"\s+", ' ', upper).strip()


def _needles(*keywords: str) -> Tuple[Tuple[str, str], ...]:
    prepared = []
    for keyword in keywords:
        spaced = normalize_merchant(keyword)
        if spaced:
            prepared.append((spaced, spaced.replace(' ', '')))
    return tuple(prepared)


def _contains_any(spaced: str, compact: str, needles: Iterable[Tuple[str, str]]) -> bool:
    for needle, needle_compact in needles:
        if needle in spaced:
            return True
        # Short compact tokens ("HM", "CC") would match inside unrelated words
        if len(needle_compact) > 2 and needle_compact in compact:
            return True
    return False


Matcher = Union[Tuple[Tuple[str, str], ...], Callable[[str, str], bool]]

SUBSCRIPTIONS = _needles(
    "NETFLIX", "DISNEY PLUS", "DISNEY+", "AMAZON PRIME", "PRIME VIDEO", "HBO MAX",
    "GLOBOPLAY", "GLOBO PLAY", "PARAMOUNT PLUS", "PARAMOUNT+", "APPLE TV",
    "SPOTIFY", "APPLE MUSIC", "YOUTUBE MUSIC", "DEEZER", "TIDAL",
    "PLAYSTATION PLUS", "PS PLUS", "XBOX GAME PASS", "GAME PASS",
    "NINTENDO SWITCH ONLINE", "NINTENDO ONLINE", "SWITCH ONLINE", "STEAM", "EPIC GAMES",
    "MICROSOFT 365", "OFFICE 365", "ONEDRIVE", "MICROSOFT TEAMS", "TEAMS",
    "XBOX LIVE", "XBOX GOLD", "ADOBE", "PHOTOSHOP", "PREMIERE", "LIGHTROOM",
    "ICLOUD", "APPLE ONE", "GOOGLE ONE", "GOOGLE WORKSPACE", "WORKSPACE",
    "YOUTUBE PREMIUM", "D GOOGLE", "DGOOGLE", "GOOGLE BRASIL PAGAMENTOS", "BRASIL PAGAMENTOS",
)

LODGING = _needles("AIRBNB", "BOOKING", "BOOKING COM", "EXPEDIA", "TRIVAGO")

AIRLINES = _needles("LATAM", "UNITED", "GOL LINHAS", "AZUL LINHAS", "AZUL AEREAS")

DELIVERY = _needles("UBER EATS", "UBEREATS", "RAPPI", "LOGGI", "99FOOD", "99 FOOD", "AIQFOME")

CLOTHING = _needles(
    "ADIDAS", "NIKE", "PUMA", "MIZUNO", "ASICS", "NEW BALANCE", "REEBOK", "SAUCONY",
    "CONVERSE", "VANS",
    "LUPO", "HAVAIANAS", "MORMAII", "SPEEDO", "MOTTA SPORT", "BIRDEN", "GALAPAGOS",
    "FUTFANATICS", "CENTAURO", "BOLOVO",
    "SHEIN", "RENNER", "RIACHUELO", "ZARA", "VIVARA", "FOREVER 21", "FASHION",
    "MARCELOSHOES", "MARCELOS SHOES",
    "H&M", "C&C", "MERCADOLIVREFASHION", "MERCADOLIVREROUPAS",
    "SHOPEE", "ALIEXPRESS", "ALI EXPRESS", "WISH",
)

FITNESS = _needles(
    "VIX ACADEMIA", "SMART FIT", "SMARTFIT", "BLUEFIT", "BODYTECH", "GOLD'S GYM",
    "GOLDS GYM", "GOLD GYM", "XTREME", "FITDANCE", "COMPANHIA ATHLETICA",
    "CA ACADEMIA", "GYMPASS", "FITPASS", "CLASSPASS", "FITPRO", "YOGA", "PILATES",
)

HEALTH_PLANS = _needles("UNIMED", "BRADESCO SAUDE", "AMIL", "SULAMERICA", "HAPVIDA")

INSURANCE = _needles(
    "BRADESCO AUTO", "MONGERAL", "SEGURO", "SEGUROS", "SEGURADORA", "SEGURADOR",
    "PEPAY", "SEGUROFATURA", "SUPROTEGIDO", "PROTEGIDO",
)

PHARMACIES = _needles(
    "FARMACIA DO DR", "FARMACIA DR", "DROGARIA PACHECO", "DROGARIAS PACHECO",
    "DROGARIA ARAUJO", "ARAUJO FARMACIAS", "FARMACIA SANTA CLARA", "SANTA CLARA",
    "RAIA", "DROGASIL", "ULTRAFARMA", "ULTRA FARMA", "NOTREDAME", "NOTRE DAME",
    "PAGUE MENOS", "FARMACIA GLOBAL", "GLOBAL FARMACIAS", "MANIPULADA",
    "FARMACIA ONLINE", "FARMACIA.COM.BR", "FARMACIASBRASILEIRAS", "CONSULTA REMEDIOS",
    "DROGARIA ONLINE", "DROGARIA.COM.BR", "OTICA CAROL", "CAROL OTICAS", "OTICA SATO",
    "SATO OTICAS", "OTICA DINIZ", "DINIZ OTICAS", "OTICA MISTER", "MISTER OTICAS",
    "OTICA PREMIER", "PREMIER OTICAS",
)

GROCERIES = _needles(
    "CARREFOUR", "EXTRA", "PAO DE ACUCAR", "ZONA SUL", "PREZUNIC", "COOP", "SONDA",
    "WALMART", "ATACADAO", "ASSAI", "UNIAO SUPRIMENTOS", "UNION SUPRIMENTOS",
    "EXTRAPLUS", "MERCADO CENTRAL", "HORTO MERCAD", "HORTOMERCAD",
    "SUPERMERCADO LOCAL", "LOCAL SUPER", "PADARIA", "CONFEITARIA",
)

EDUCATION = _needles(
    "DEVSUPERIOR", "UDEMY", "COURSERA", "ALURA", "PLATZI", "SKILLSHARE",
    "LINKEDIN LEARNING", "LINKEDIN LEARN", "EDTECH", "CAMBLY", "PREPLY",
    "ENGLISH LIVE", "ENGLISHLIVE", "BABBEL", "DUOLINGO", "BUSUU", "VOXY", "MOSALINGUA",
    "ESCOLA TECNICA", "CURSO PREPARATORIO", "CENTRO DE TREINAMENTO",
    "INSTITUTO EDUCACIONAL", "CODECADEMY", "TREEHOUSE", "DATACAMP", "HACKERRANK", "LEETCODE",
)

BEAUTY = _needles(
    "SALAO", "BARBEARIA", "CASH BARBER", "MANICURE", "PEDICURE", "NATURA",
    "BOTICARIO", "AVON", "MARY KAY", "MARYKAY", "SEPHORA", "COSMETICOS",
)

_WORD_GOL = re.compile(r"\bGOL\b")
_WORD_OTICA = re.compile(r"\bOTICAS?\b")
_WORD_PET = re.compile(r"\bPET\b")
_BAR_PREFIX = re.compile(r"^BAR(?!R)")


def _has(*words: str) -> Callable[[str, str], bool]:
    return lambda spaced, compact: any(word in spaced for word in words)


# Ordered (category, matcher) rules for expenses
EXPENSE_RULES: List[Tuple[str, Matcher]] = [
    ("Taxas e Juros", _has("ANUIDADE", "ANULIDADE")),
    ("Assinaturas", SUBSCRIPTIONS),
    ("Assinaturas", lambda n, c: "GOOGLE" in n and "PAGAMENTOS" in n),
    ("Assinaturas", lambda n, c: "APPLE COM BILL" in n or ("APPLE" in n and "COM" in n and "BILL" in n)),
    ("Hospedagem", LODGING),
    ("Viagem", lambda n, c: _contains_any(n, c, AIRLINES) or bool(_WORD_GOL.search(n))),
    ("iFood", lambda n, c: n == "IFD" or n.startswith("IFD ") or "IFOOD" in n),
    ("Alimentação", DELIVERY),
    ("Vestuário", CLOTHING),
    ("Vestuário", lambda n, c: "AMAZON" in n and "FASHION" in n),
    ("Academia/Saúde", FITNESS),
    ("Academia/Saúde", lambda n, c: "ACADEMIA" in n or " GYM" in n),
    ("Saúde", lambda n, c: "VISAOEXPRESS" in n or bool(_WORD_OTICA.search(n))),
    ("Plano de Saúde", HEALTH_PLANS),
    ("Seguro", INSURANCE),
    ("Saúde", PHARMACIES),
    ("Saúde", _has("FARMACIA", "DROGARIA", "REMEDIO")),
    ("Pet", lambda n, c: "PET STOCK" in n or bool(_WORD_PET.search(n))),
    ("E-commerce", lambda n, c: (
        "AMAZONMKTPLC" in n or "AMAZON BR" in n or n == "AMAZON"
        or n.startswith("AMAZON ") or " AMAZON" in n
    )),
    ("Alimentação", GROCERIES),
    ("Serviços", _has("ZZRSV SP JARDINS LINK")),
    ("Lazer", lambda n, c: (
        bool(_BAR_PREFIX.match(n)) or " BAR " in n or any(word in n for word in (
            "CHURRASC", "CHOPPERIA", "RESTAURANTE", "BOTECO", "BUTECO", "CASA DE SHOW",
            "FLUENTE", "BEBIDA", "PIMENTA CARIOCA",
        ))
    )),
    ("Educação", EDUCATION),
    ("Beleza", BEAUTY),
    ("Transporte", lambda n, c: (
        "UBER" in n or " 99" in n or "99 " in n or "CABIFY" in n or "LYFT" in n or "EASY TAXI" in n
        or "EASYTAXI" in n
    )),
    ("Transporte", _has("POSTO", "COMBUST", "IPIRANGA", "SHELL", "PETRO")),
    ("Transporte", _has("ESTACIONAMENTO", "PARKING", "ZONA AZUL")),
    ("Alimentação", _has("PIZZA", "LANCHONETE", "CAFE", "SORVETERIA", "ACAI", "JUICE BAR")),
    ("Alimentação", _has("MERCADO", "SUPERMERC", "ATACADO")),
    ("Assinaturas", _has("STREAM", "SUBSCRIPTION", "ASSINAT")),
    ("Saúde", _has("HOSPITAL", "CLINICA", "CONSULTA", "MEDIC")),
    ("Internet", _has("INTERNET")),
    ("Celular", _has("TELEFONE", "CELULAR")),
    ("Aluguel", _has("ALUGUEL", "RENT")),
    ("Água", _has("AGUA")),
    ("Luz", _has("ENERGIA", "LUZ")),
]

REFUND_WORDS = ("ESTORNO", "CREDITO", "REEMBOLSO", "DEVOLUCAO", "PAYGOAL", "CASHBACK", "PONTOS")


class MerchantCategoryMapper:
    """
    Keyword-based category mapper.

    Example:
        >>> MerchantCategoryMapper.categorize("UBER EATS *PEDIDO", TransactionType.EXPENSE)
        'Alimentação'
        >>> MerchantCategoryMapper.categorize("PAGAMENTO EFETUADO", TransactionType.INCOME)
        'Pagamento'
    """

    @staticmethod
    def categorize(description: str, transaction_type: TransactionType = TransactionType.EXPENSE) -> str:
        """
        Categorize a transaction description.

        Args:
            description: Row description as printed on the invoice.
            transaction_type: EXPENSE or INCOME.

        Returns:
            Category label. "Outros" when nothing matches.
        """
        if not description or not description.strip():
            return DEFAULT_CATEGORY

        spaced = normalize_merchant(description)
        compact = spaced.replace(' ', '')

        if transaction_type == TransactionType.INCOME:
            if "PAGAMENTO" in spaced:
                return "Pagamento"
            if any(word in spaced for word in REFUND_WORDS):
                return "Reembolso"
            return DEFAULT_CATEGORY

        for category, matcher in EXPENSE_RULES:
            if callable(matcher):
                if matcher(spaced, compact):
                    return category
            elif _contains_any(spaced, compact, matcher):
                return category

        return DEFAULT_CATEGORY


def categorize(description: str, transaction_type: TransactionType = TransactionType.EXPENSE) -> str:
    """Module-level shortcut for MerchantCategoryMapper.categorize."""
    return MerchantCategoryMapper.categorize(description, transaction_type)


__all__ = ['MerchantCategoryMapper', 'categorize', 'normalize_merchant', 'DEFAULT_CATEGORY']
