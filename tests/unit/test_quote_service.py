# tests/unit/test_quote_service.py
"""
Unit Test per QuoteService
Autosalone - Gestione Stock e Prezzi
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from autosalone.core.errors import InvalidStateError, NotFoundError, ValidationError
from autosalone.models.records import QuoteStatus
from autosalone.models.requests import (
    ConfigurationRequest, ContractRequest, ManualQuoteCreate, QuoteCreate
)


def quote_request(vehicle_id: str, **overrides) -> QuoteCreate:
    data = {
        "vehicle_id": vehicle_id,
        "dealer_id": "Dealer Roma",
        "customer_name": "Mario Rossi",
        "customer_email": "mario.rossi@example.it",
        "accessory_ids": ["acc-tappetini"],
    }
    data.update(overrides)
    return QuoteCreate(**data)


def contractor(**overrides) -> ContractRequest:
    data = {
        "first_name": "Mario",
        "last_name": "Rossi",
        "fiscal_code": "RSSMRA80A01H501U",
        "birth_date": "1980-01-01",
        "birth_place": "Roma",
        "birth_province": "RM",
    }
    data.update(overrides)
    return ContractRequest(**data)


class TestCreateQuote:

    @pytest.mark.asyncio
    async def test_standard_vat_quote(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id))

        assert quote.status == QuoteStatus.PENDING
        assert quote.base_price == 19800 + 200
        assert quote.price == 20000
        assert quote.vat_rate == 22
        assert quote.accessories == ["Tappetini"]
        assert quote.accessory_price == 200
        # messa su strada di default: 400
        assert quote.road_preparation_fee == 400
        assert quote.final_price == 20400
        assert quote.manual_entry is False

    @pytest.mark.asyncio
    async def test_reduced_vat_quote(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id, reduced_vat=True))

        assert quote.price == 17049
        assert quote.vat_rate == 4
        assert quote.final_price == 17390

    @pytest.mark.asyncio
    async def test_discount_and_bonuses(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(
            cmc_vehicle.id, discount=1000, license_plate_bonus=500, safety_kit=100
        ))

        assert quote.final_price == 20000 - 1000 - 500 + 100 + 400

    @pytest.mark.asyncio
    async def test_trade_in_fields_ignored_without_trade_in(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(
            cmc_vehicle.id, has_trade_in=False, trade_in_brand="Fiat", trade_in_value=5000, trade_in_bonus=300
        ))

        assert quote.trade_in_brand is None
        assert quote.trade_in_value == 0
        assert quote.trade_in_bonus == 0
        assert quote.final_price == 20400

    @pytest.mark.asyncio
    async def test_quote_never_negative(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(
            cmc_vehicle.id, has_trade_in=True, trade_in_brand="Fiat", trade_in_value=30000
        ))

        assert quote.final_price == 0

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, quote_service):
        with pytest.raises(NotFoundError):
            await quote_service.create_quote(quote_request("missing"))

    def test_invalid_email(self):
        with pytest.raises(PydanticValidationError):
            QuoteCreate(vehicle_id="v1", dealer_id="d", customer_name="Mario", customer_email="non-valida")

    @pytest.mark.parametrize("email, expected", [
        ("", None),
        ("   ", None),
        (None, None),
        ("mario.rossi@example.it", "mario.rossi@example.it"),
    ])
    def test_optional_email(self, email, expected):
        request = QuoteCreate(vehicle_id="v1", dealer_id="d", customer_name="Mario", customer_email=email)

        assert request.customer_email == expected

    @pytest.mark.asyncio
    async def test_quote_without_email(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id, customer_email=""))

        assert quote.customer_email is None


class TestManualQuote:

    @pytest.mark.asyncio
    async def test_price_from_configuration(self, quote_service):
        request = ManualQuoteCreate(
            dealer_id="Dealer Roma",
            customer_name="Mario Rossi",
            configuration=ConfigurationRequest(
                model_id="mod-dr3",
                trim_id="trim-plus",
                fuel_type_id="fuel-gpl",
                color_id="col-grigio",
                transmission_id="tr-manuale",
                accessory_ids=["acc-tappetini"]
            )
        )

        quote = await quote_service.create_manual_quote(request)

        assert quote.manual_entry is True
        assert quote.vehicle_id is None
        assert quote.base_price == 15000 + 2500 + 1500 + 800 + 0 + 200
        assert quote.accessories == ["Tappetini"]
        assert quote.final_price == 20400


class TestQuoteWorkflow:

    @pytest.mark.asyncio
    async def test_approve_then_convert(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id, discount=500))
        await quote_service.approve_quote(quote.id)

        converted, contract = await quote_service.convert_quote(quote.id, contractor())

        assert converted.status == QuoteStatus.CONVERTED
        assert contract.quote_id == quote.id
        assert contract.vehicle_id == cmc_vehicle.id
        assert contract.dealer_id == "Dealer Roma"
        assert contract.final_price == quote.final_price
        assert contract.status == "attivo"
        assert contract.contractor["fiscal_code"] == "RSSMRA80A01H501U"
        assert await quote_service.list_contracts("Dealer Roma") == [contract]

    @pytest.mark.asyncio
    async def test_contract_price_not_clamped(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(
            cmc_vehicle.id, has_trade_in=True, trade_in_value=30000
        ))
        await quote_service.approve_quote(quote.id)

        _, contract = await quote_service.convert_quote(quote.id, contractor())

        assert quote.final_price == 0
        assert contract.final_price == 20400 - 30000

    @pytest.mark.asyncio
    async def test_convert_requires_approval(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id))

        with pytest.raises(InvalidStateError):
            await quote_service.convert_quote(quote.id, contractor())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", [None, "", "  "])
    async def test_reject_requires_reason(self, quote_service, cmc_vehicle, reason):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id))

        with pytest.raises(ValidationError):
            await quote_service.reject_quote(quote.id, reason)

    @pytest.mark.asyncio
    async def test_reject(self, quote_service, cmc_vehicle):
        quote = await quote_service.create_quote(quote_request(cmc_vehicle.id))

        rejected = await quote_service.reject_quote(quote.id, " Prezzo troppo alto ")

        assert rejected.status == QuoteStatus.REJECTED
        assert rejected.rejection_reason == "Prezzo troppo alto"

        with pytest.raises(InvalidStateError):
            await quote_service.approve_quote(quote.id)

    @pytest.mark.asyncio
    async def test_list_and_delete(self, quote_service, cmc_vehicle):
        first = await quote_service.create_quote(quote_request(cmc_vehicle.id))
        second = await quote_service.create_quote(quote_request(cmc_vehicle.id, dealer_id="Dealer Milano"))
        await quote_service.approve_quote(second.id)

        assert {q.id for q in await quote_service.list_quotes()} == {first.id, second.id}
        assert [q.id for q in await quote_service.list_quotes(status="approved")] == [second.id]
        assert [q.id for q in await quote_service.list_quotes(dealer_id="Dealer Roma")] == [first.id]

        await quote_service.delete_quote(first.id)
        with pytest.raises(NotFoundError):
            await quote_service.get_quote(first.id)


class TestContractRequest:

    def test_company_requires_legal_representative(self):
        with pytest.raises(PydanticValidationError):
            contractor(contractor_type="personaGiuridica", company_name="Rossi Srl")

    def test_company_with_legal_representative(self):
        request = contractor(
            contractor_type="personaGiuridica",
            company_name="Rossi Srl",
            legal_rep_first_name="Mario",
            legal_rep_last_name="Rossi",
            legal_rep_fiscal_code="RSSMRA80A01H501U"
        )
        assert request.company_name == "Rossi Srl"

# Pytest-Marks
pytestmark = [
    pytest.mark.unit
]
