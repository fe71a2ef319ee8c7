"""Unit tests for the issuer layout parsers."""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from src.parsers.banco_do_brasil import BancoDoBrasilParser
from src.parsers.bradesco import BradescoParser
from src.parsers.c6 import C6Parser
from src.parsers.generic import GenericInvoiceParser
from src.parsers.itau import ItauParser
from src.parsers.itau_personnalite import ItauPersonnaliteParser
from src.parsers.mercado_pago import MercadoPagoParser
from src.parsers.models import Installment, TransactionScope, TransactionType
from src.parsers.nubank import NubankParser, strip_icons
from src.parsers.registry import build_default_strategies, strategy_by_name
from src.parsers.remote_extractor import RemoteExtractorClient
from src.parsers.santander import SantanderParser
from src.parsers.selector import ParserSelector
from src.parsers.sicredi import SicrediParser
from tests.conftest import FULL_TEXT, PERSONNALITE_TEXT

BRADESCO_TEXT = """BRADESCO
Titular: MARIA SILVA
Cartão: Bradesco Visa Platinum
Total da fatura: R$ 1.130,00
Vencimento: 25/12/2025
LANÇAMENTOS
27/10 CTCE FORTALEZA CE P/1 500,00
03/11 PADARIA REAL 30,00
05/11 LOJA DEMO
600,00
10/11 PAGTO DEB EM C/C 900,00
12/11 ESTORNO COMPRA -50,00
LIMITES
"""

NUBANK_TEXT = """Nubank
Esta é a sua fatura
Data de vencimento: 15 DEZ 2025
TRANSAÇÕES DE 06 NOV A 05 DEZ
06 NOV Pepay*Segurofatura R$ 6,90
12 NOV R F CRUZ CHURRASCARIA
R$ 104,30
14 NOV
UBER *TRIP R$ 23,10
Pagamento em 20 NOV: -R$ 934,83
"""

C6_TEXT = """C6 BANK
Fatura do cartão
Vencimento: 20/12/2025
C6 Carbon Virtual Final 5867 - JOAO SOUZA
27 out AIRBNB * HMF99EFWK9 - Parcela 2/3 369,48
14 nov BAR PIMENTA CARIOCA 92,40
14 nov BAR PIMENTA CARIOCA 92,40
C6 Carbon Final 1234 - JOAO SOUZA
14 nov BAR PIMENTA CARIOCA 92,40
20 nov ESTORNO LOJA 10,00
"""

ITAU_TEXT = """Itaú Unibanco
Resumo da fatura
Com vencimento em: 22/12/2025
Pagamentos efetuados
05/11 PAGAMENTO EFETUADO -1.500,00
Lançamentos: compras e saques
10/11 MERCADO BOM PRECO 250,00
12 NOV UBER TRIP 35,90
15/11 LOJA XPTO LTDA 03/10 120,00
Compras parceladas - próximas faturas
20/12 LOJA XPTO LTDA 04/10 120,00
Encargos cobrados nesta fatura
"""

SANTANDER_TEXT = """SANTANDER
Total a Pagar R$ 1.000,00 Vencimento 20/12/2025
MARIA SILVA - 4258 XXXX XXXX 8854
Pagamentos e demais créditos
05/11 PAGAMENTO DE FATURA -800,00
Parcelamentos
03/10 LOJA XPTO 02/05 120,00
Despesas
05/11 RESTAURANTE ABC 45,90
06/11 AMAZON US 30,00 5,50
"""

BANCO_DO_BRASIL_TEXT = """OUROCARD VISA INFINITE
Banco do Brasil
Titular: JOSE PEREIRA
Resumo da fatura
Vencimento: 10/09/2025
Descrição País Valor
20/08 PGTO. COBRANCA 2958 BR R$ -84,00
LAZER
21/08 WWW.STATUE.COM US R$ 79,68
      *** 14,00 DOLAR AMERICANO
      Cotação do Dólar 5,69
22/08 PADARIA CENTRAL BR R$ 25,00
23/08 ESTORNO COMPRA BR R$ -10,00
Total da Fatura R$ 94,68
"""

SICREDI_TEXT = """Sicredi
Resumo da fatura
Vencimento: 10/12/2025
Cartão Sicredi Mastercard final 1234
Data e hora  Cidade  Tipo  Descrição  Parcela  Valor em reais
11/nov 06:13  PORTO ALEGRE  Online  NETFLIX  01/03  R$ 55,90
12/nov 10:00  CANOAS  Presencial  POSTO IPIRANGA    R$ 200,00
15/nov 09:00  PORTO ALEGRE  Online  ESTORNO NETFLIX    R$ -55,90
"""

MERCADO_PAGO_PARSER_TEXT = """Mercado Pago
Vencimento: 10/12/2025
Cartão Visa [**** 1234]
03/11 LOJA XPTO R$ 120,00
05/11 LOJA ABC Parcela 2 de 5 R$ 80,00
07/11 Compra internacional em AMAZON
USD 10,00
R$ 55,10
"""


def remote_client(handler) -> RemoteExtractorClient:
    return RemoteExtractorClient(base_url="http://remote.test", transport=httpx.MockTransport(handler))


class TestBradescoParser:
    """Tests for BradescoParser."""

    @pytest.fixture
    def parser(self):
        return BradescoParser()

    def test_is_applicable(self, parser):
        """Test the brand, due date and launches markers are recognized."""
        assert parser.is_applicable(BRADESCO_TEXT) is True
        assert parser.is_applicable(NUBANK_TEXT) is False

    def test_extract_due_date(self, parser):
        """Test the due date is read from the Vencimento label."""
        assert parser.extract_due_date(BRADESCO_TEXT) == date(2025, 12, 25)

    def test_due_date_without_year_uses_document_year(self, parser):
        """Test dd/mm due dates borrow the year of another full date."""
        text = "Emissão 01/12/2025\nVencimento: 25/12"
        assert parser.extract_due_date(text) == date(2025, 12, 25)

    def test_extract_transactions(self, parser):
        """Test rows, split rows and skipped debit payments."""
        transactions = parser.extract_transactions(BRADESCO_TEXT)

        assert [tx.description for tx in transactions] == [
            "CTCE FORTALEZA CE P/1", "PADARIA REAL", "LOJA DEMO", "ESTORNO COMPRA",
        ]
        lodging = transactions[0]
        assert lodging.amount == Decimal("500.00")
        assert lodging.date == date(2025, 10, 27)
        assert lodging.category == "Hospedagem"
        assert lodging.installment == Installment(current=1, total=1)
        assert lodging.card_name == "Bradesco Visa Platinum"
        assert lodging.cardholder_name == "MARIA SILVA"
        assert transactions[2].amount == Decimal("600.00")

    def test_negative_amount_is_income(self, parser):
        """Test refunds are reported as income with a positive amount."""
        refund = parser.extract_transactions(BRADESCO_TEXT)[-1]

        assert refund.type == TransactionType.INCOME
        assert refund.amount == Decimal("50.00")
        assert refund.category == "Reembolso"


class TestNubankParser:
    """Tests for NubankParser."""

    @pytest.fixture
    def parser(self):
        return NubankParser()

    def test_is_applicable_requires_brand(self, parser):
        """Test the generic Nubank wording alone is not enough."""
        assert parser.is_applicable(NUBANK_TEXT) is True
        assert parser.is_applicable(NUBANK_TEXT.replace("Nubank", "Outro Banco")) is False

    def test_extract_due_date(self, parser):
        """Test the textual due date."""
        assert parser.extract_due_date(NUBANK_TEXT) == date(2025, 12, 15)

    def test_extract_transactions(self, parser):
        """Test one-line rows, split amounts and date anchors."""
        transactions = parser.extract_transactions(NUBANK_TEXT)
        expenses = [tx for tx in transactions if tx.type == TransactionType.EXPENSE]

        assert [(tx.description, tx.amount, tx.category) for tx in expenses] == [
            ("Pepay*Segurofatura", Decimal("6.90"), "Seguro"),
            ("R F CRUZ CHURRASCARIA", Decimal("104.30"), "Alimentação"),
            ("UBER *TRIP", Decimal("23.10"), "Transporte"),
        ]
        assert expenses[0].date == date(2025, 11, 6)
        assert expenses[2].date == date(2025, 11, 14)

    def test_payment_reported_as_income(self, parser):
        """Test "Pagamento em" lines become income rows."""
        payment = parser.extract_transactions(NUBANK_TEXT)[-1]

        assert payment.type == TransactionType.INCOME
        assert payment.description == "Pagamento em 20 NOV"
        assert payment.amount == Decimal("934.83")
        assert payment.category == "Reembolso"

    def test_no_rows_without_due_date(self, parser):
        """Test rows are not guessed without a due date."""
        assert parser.extract_transactions(NUBANK_TEXT.replace("Data de vencimento", "Emitida em")) == []

    @pytest.mark.parametrize("raw,expected", [
        ("↗ UBER *TRIP", "UBER *TRIP"),
        ("UBER *TRIP", "UBER *TRIP"),
        ("** *", ""),
    ])
    def test_strip_icons(self, raw, expected):
        """Test leading symbol tokens are dropped."""
        assert strip_icons(raw) == expected


class TestC6Parser:
    """Tests for C6Parser."""

    @pytest.fixture
    def parser(self):
        return C6Parser()

    def test_is_applicable(self, parser):
        """Test the C6 brand is recognized."""
        assert parser.is_applicable(C6_TEXT) is True
        assert parser.is_applicable(BRADESCO_TEXT) is False

    def test_extract_transactions(self, parser):
        """Test card blocks, installments and duplicate rows."""
        transactions = parser.extract_transactions(C6_TEXT)

        assert len(transactions) == 4
        airbnb = transactions[0]
        assert airbnb.description == "AIRBNB * HMF99EFWK9"
        assert airbnb.installment == Installment(current=2, total=3)
        assert airbnb.amount == Decimal("369.48")
        assert airbnb.date == date(2025, 10, 27)
        assert airbnb.card_name == "Carbon Virtual 5867"

    def test_duplicates_dropped_per_card(self, parser):
        """Test repeated rows are dropped only within one card block."""
        transactions = parser.extract_transactions(C6_TEXT)
        bars = [tx for tx in transactions if tx.description == "BAR PIMENTA CARIOCA"]

        assert [tx.card_name for tx in bars] == ["Carbon Virtual 5867", "Carbon 1234"]

    def test_refund_is_income(self, parser):
        """Test "ESTORNO" rows are income."""
        assert parser.extract_transactions(C6_TEXT)[-1].type == TransactionType.INCOME

    def test_textual_due_date(self, parser):
        """Test "Vencimento: 20 de dezembro de 2025"."""
        assert parser.extract_due_date("C6 Bank\nVencimento: 20 de dezembro de 2025") == date(2025, 12, 20)


class TestItauParser:
    """Tests for ItauParser."""

    @pytest.fixture
    def parser(self):
        return ItauParser()

    def test_is_applicable_requires_sections(self, parser):
        """Test the payment and purchase sections are both required."""
        assert parser.is_applicable(ITAU_TEXT) is True
        assert parser.is_applicable("Itaú Unibanco\nResumo da fatura") is False

    def test_current_due_date_label(self, parser):
        """Test "Com vencimento em" is read as the current due date."""
        assert parser.extract_due_date(ITAU_TEXT) == date(2025, 12, 22)

    def test_extract_transactions(self, parser):
        """Test payments, purchases and the ignored future installments."""
        transactions = parser.extract_transactions(ITAU_TEXT)

        assert [tx.description for tx in transactions] == [
            "PAGAMENTO EFETUADO", "MERCADO BOM PRECO", "UBER TRIP", "LOJA XPTO LTDA 03/10",
        ]
        assert transactions[0].type == TransactionType.INCOME
        assert transactions[0].amount == Decimal("1500.00")
        assert transactions[2].date == date(2025, 11, 12)

    def test_business_scope_and_installment(self, parser):
        """Test company purchases are flagged and installments parsed."""
        row = parser.extract_transactions(ITAU_TEXT)[-1]

        assert row.scope == TransactionScope.BUSINESS
        assert row.installment == Installment(current=3, total=10)


class TestItauPersonnaliteParser:
    """Tests for ItauPersonnaliteParser."""

    REMOTE_BODY = {
        "bank": "ITAU",
        "dueDate": "2025-12-22",
        "total": 400.5,
        "transactions": [
            {"date": "10/11", "description": "RESTAURANTE DO ZE", "amount": 120.5, "cardFinal": "8578"},
            {"date": "12/11", "description": "LOJA ABC 02/05", "amount": 300.0},
        ],
    }

    def test_is_applicable(self):
        """Test premium wording is required over the regular layout."""
        parser = ItauPersonnaliteParser()

        assert parser.is_applicable(PERSONNALITE_TEXT) is True
        assert parser.is_applicable(ITAU_TEXT) is False

    def test_extract_transactions(self):
        """Test card blocks, category lines and the installment cut."""
        transactions = ItauPersonnaliteParser().extract_transactions(PERSONNALITE_TEXT)

        assert [tx.description for tx in transactions] == ["RESTAURANTE DO ZE", "LOJA ABC", "ESTORNO LOJA"]
        assert transactions[0].category == "SAUDE"
        assert transactions[0].card_name == "Itau Personnalitê Mastercard final 8578"
        assert transactions[1].installment == Installment(current=2, total=5)
        assert transactions[2].type == TransactionType.INCOME
        assert transactions[2].amount == Decimal("20.00")

    def test_parse_with_document_uses_remote(self):
        """Test the remote response replaces the text parse."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=self.REMOTE_BODY)

        parser = ItauPersonnaliteParser(remote_client(handler))
        result = parser.parse_with_document(b"%PDF-1.7", PERSONNALITE_TEXT)

        assert requests[0].url.path == "/parse/itau-personnalite"
        assert result.due_date == date(2025, 12, 22)
        assert result.total_amount == Decimal("400.5")
        assert result.transactions[0].date == date(2025, 11, 10)
        assert result.transactions[0].card_name.endswith("final 8578")
        assert result.transactions[1].description == "LOJA ABC"
        assert result.transactions[1].installment == Installment(current=2, total=5)

    def test_remote_failure_falls_back_to_text(self):
        """Test a failing remote extractor yields the text parse instead."""
        parser = ItauPersonnaliteParser(remote_client(lambda request: httpx.Response(503)))

        result = parser.parse_with_document(b"%PDF-1.7", PERSONNALITE_TEXT)

        assert result.parser_name == "itau_personnalite"
        assert result.due_date == date(2025, 12, 22)
        assert len(result.transactions) == 3

    def test_no_remote_client_falls_back_to_text(self):
        """Test the text parse is used when no client is configured."""
        result = ItauPersonnaliteParser().parse_with_document(b"%PDF-1.7", PERSONNALITE_TEXT)

        assert len(result.transactions) == 3


class TestSantanderParser:
    """Tests for SantanderParser."""

    @pytest.fixture
    def parser(self):
        return SantanderParser()

    def test_header_due_date(self, parser):
        """Test the due date printed next to the total."""
        assert parser.is_applicable(SANTANDER_TEXT) is True
        assert parser.extract_due_date(SANTANDER_TEXT) == date(2025, 12, 20)

    def test_extract_transactions(self, parser):
        """Test sections, installments and the USD column."""
        transactions = parser.extract_transactions(SANTANDER_TEXT)

        assert len(transactions) == 4
        payment, installment, restaurant, amazon = transactions
        assert payment.type == TransactionType.INCOME
        assert payment.category == "Pagamento"
        assert installment.installment == Installment(current=2, total=5)
        assert installment.date == date(2025, 10, 3)
        assert restaurant.category == "Alimentação"
        assert amazon.amount == Decimal("30.00")

    def test_holder_block_names_card(self, parser):
        """Test the holder block sets the card and holder names."""
        row = parser.extract_transactions(SANTANDER_TEXT)[0]

        assert row.card_name == "Santander 8854 (4258)"
        assert row.cardholder_name == "MARIA SILVA"

    def test_uses_net_total(self, parser):
        """Test Santander derives missing totals from the net sum."""
        assert parser.uses_net_total is True


class TestBancoDoBrasilParser:
    """Tests for BancoDoBrasilParser."""

    @pytest.fixture
    def parser(self):
        return BancoDoBrasilParser()

    def test_is_applicable_requires_brand(self, parser):
        """Test shared summary wording without the brand is rejected."""
        assert parser.is_applicable(BANCO_DO_BRASIL_TEXT) is True
        assert parser.is_applicable("Resumo da fatura\nTotal da fatura R$ 10,00") is False

    def test_extract_transactions(self, parser):
        """Test previous payments, category headers and foreign detail lines are skipped."""
        transactions = parser.extract_transactions(BANCO_DO_BRASIL_TEXT)

        assert [tx.description for tx in transactions] == [
            "WWW.STATUE.COM", "PADARIA CENTRAL", "ESTORNO COMPRA",
        ]
        assert transactions[0].amount == Decimal("79.68")
        assert transactions[0].date == date(2025, 8, 21)
        assert transactions[0].card_name == "Banco do Brasil"
        assert transactions[0].cardholder_name == "JOSE PEREIRA"
        assert transactions[2].type == TransactionType.INCOME
        assert transactions[2].category == "Reembolso"


class TestSicrediParser:
    """Tests for SicrediParser."""

    def test_extract_transactions(self):
        """Test the column table is split on runs of spaces."""
        transactions = SicrediParser().extract_transactions(SICREDI_TEXT)

        assert len(transactions) == 3
        netflix, fuel, refund = transactions
        assert netflix.installment == Installment(current=1, total=3)
        assert netflix.date == date(2025, 11, 11)
        assert netflix.card_name == "Cartão Sicredi Mastercard final 1234"
        assert fuel.amount == Decimal("200.00")
        assert fuel.category == "Transporte"
        assert refund.type == TransactionType.INCOME

    def test_parse_with_document(self):
        """Test remote rows with ISO dates only, and the card final."""
        body = {
            "bank": "SICREDI",
            "dueDate": "2025-12-10",
            "total": 311.80,
            "transactions": [
                {"date": "2025-11-11", "description": "NETFLIX", "amount": 55.90, "cardFinal": "1234",
                 "installment": {"current": 1, "total": 3}},
                {"date": "bad", "description": "X", "amount": 1},
            ],
        }
        parser = SicrediParser(remote_client(lambda request: httpx.Response(200, json=body)))

        result = parser.parse_with_document(b"%PDF-1.7", SICREDI_TEXT)

        assert len(result.transactions) == 1
        assert result.card_last_four == "1234"
        assert result.total_amount == Decimal("311.80")
        assert result.bank_name == "SICREDI"
        assert result.transactions[0].installment == Installment(current=1, total=3)

    def test_parse_with_document_without_client(self):
        """Test None is returned when no remote extractor is configured."""
        assert SicrediParser().parse_with_document(b"%PDF-1.7", SICREDI_TEXT) is None


class TestMercadoPagoParser:
    """Tests for MercadoPagoParser."""

    def test_extract_transactions(self):
        """Test basic, installment and international rows."""
        transactions = MercadoPagoParser().extract_transactions(MERCADO_PAGO_PARSER_TEXT)

        assert [tx.amount for tx in transactions] == [Decimal("120.00"), Decimal("80.00"), Decimal("55.10")]
        assert transactions[1].installment == Installment(current=2, total=5)
        assert transactions[2].description == "Compra internacional em AMAZON"
        assert transactions[0].card_name == "Visa 1234"


class TestGenericInvoiceParser:
    """Tests for GenericInvoiceParser."""

    def test_english_statement(self):
        """Test labels and amounts in English notation."""
        parser = GenericInvoiceParser()

        assert parser.is_applicable(FULL_TEXT) is True
        assert parser.extract_due_date(FULL_TEXT) == date(2025, 11, 21)
        transactions = parser.extract_transactions(FULL_TEXT)
        assert len(transactions) == 5
        assert transactions[0].amount == Decimal("120.50")
        assert transactions[0].date == date(2025, 11, 3)

    def test_requires_total_label(self):
        """Test a statement without a total label is not claimed."""
        text = FULL_TEXT.replace("Total of this invoice", "Balance")
        assert GenericInvoiceParser().is_applicable(text) is False


class TestRegistry:
    """Tests for the default strategy registry."""

    def test_priority_order(self):
        """Test the Personnalite layout precedes the regular Itau layout."""
        names = [s.name for s in build_default_strategies(RemoteExtractorClient("http://remote.test"))]

        assert names.index("itau_personnalite") < names.index("itau")
        assert names[-1] == "generic"
        assert len(names) == len(set(names))

    def test_strategy_by_name(self):
        """Test lookup by name."""
        assert isinstance(strategy_by_name("c6", RemoteExtractorClient("http://remote.test")), C6Parser)

    def test_strategy_by_name_unknown(self):
        """Test unknown names raise KeyError."""
        with pytest.raises(KeyError):
            strategy_by_name("unknown", RemoteExtractorClient("http://remote.test"))

    @pytest.mark.parametrize("text,expected", [
        (BRADESCO_TEXT, "bradesco"),
        (NUBANK_TEXT, "nubank"),
        (C6_TEXT, "c6"),
        (ITAU_TEXT, "itau"),
        (PERSONNALITE_TEXT, "itau_personnalite"),
        (SANTANDER_TEXT, "santander"),
        (BANCO_DO_BRASIL_TEXT, "banco_do_brasil"),
        (SICREDI_TEXT, "sicredi"),
        (FULL_TEXT, "generic"),
    ])
    def test_default_selection(self, text, expected):
        """Test each sample is routed to its issuer parser."""
        selector = ParserSelector(build_default_strategies(RemoteExtractorClient("http://remote.test")))

        assert selector.select(text).parser.name == expected
