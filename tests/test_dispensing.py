import pytest
import re
from fastapi import FastAPI
from httpx import AsyncClient
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from dispensary.core.exceptions import ConflictError
from dispensary.domain.dispensing.models import DrugDispensal, DispensalItem, BalanceTransaction, TransactionType
from dispensary.domain.inventory.models import StockMovement, MovementType
from dispensary.domain.dispensing.service import DispensingService

API = "/api/v1"


async def _stock(client: AsyncClient, product_id: str) -> int:
    drugs = (await client.get(f"{API}/drugs")).json()["drugs"]
    return next(d["quantity"] for d in drugs if d["id"] == product_id)


async def _count(db: AsyncSession, model, *criteria) -> int:
    return await db.scalar(select(func.count()).select_from(model).where(*criteria))


@pytest.fixture
async def two_item_prescription(create_drug, create_prescription):
    """Amoxicillin x3 (stock 5) and Vitamin C x10 (stock 40)"""
    amoxicillin = await create_drug(name="Amoxicillin", quantity=5, price=4.0)
    vitamin_c = await create_drug(name="Vitamin C", quantity=40, price=0.5)
    prescription = await create_prescription([
        {"productId": amoxicillin["id"], "quantityPrescribed": 3},
        {"productId": vitamin_c["id"], "quantityPrescribed": 10},
    ])
    return prescription, amoxicillin, vitamin_c


@pytest.mark.dispensing
@pytest.mark.integration
class TestDispense:
    """POST /pharmacist/prescriptions/{id}/dispense."""

    async def test_full_dispense(self, client: AsyncClient, db_session: AsyncSession, two_item_prescription) -> None:
        prescription, amoxicillin, vitamin_c = two_item_prescription
        items = prescription["items"]

        response = await client.post(f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense", json={
            "dispensedItems": [
                {"itemId": items[0]["id"], "quantityDispensed": 3},
                {"itemId": items[1]["id"], "quantityDispensed": 10},
            ],
            "totalAmount": 17.0,
            "amountPaid": 20.0,
            "paymentMethod": "cash",
            "dispensedBy": "pharm-1",
        })

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Prescription dispensed successfully"
        data = body["data"]
        assert re.fullmatch(r"DISP-\d{4}-\d{6}", data["dispensalNo"])
        assert data["prescriptionNo"] == prescription["prescriptionNo"]
        assert data["patientName"] == "Ada Obi"
        assert data["status"] == "dispensed"
        assert data["change"] == 3.0

        assert await _stock(client, amoxicillin["id"]) == 2
        assert await _stock(client, vitamin_c["id"]) == 30

        detail = (await client.get(f"{API}/pharmacist/prescriptions/{prescription['id']}")).json()
        assert detail["status"] == "dispensed"
        assert detail["amountPaid"] == 20.0
        assert detail["dispensedAt"] is not None
        assert all(i["isDispensed"] for i in detail["items"])

        pending = (await client.get(f"{API}/pharmacist/prescriptions/pending")).json()
        assert pending["prescriptions"] == []

        payments = (await db_session.execute(select(BalanceTransaction))).scalars().all()
        assert len(payments) == 1
        assert payments[0].amount == 20.0
        assert payments[0].type == TransactionType.DEBIT
        assert payments[0].description == f"Payment for prescription {prescription['prescriptionNo']}"

        movements = (await db_session.execute(
            select(StockMovement).where(StockMovement.movement_type == MovementType.DISPENSE)
        )).scalars().all()
        assert {m.reference for m in movements} == {data["dispensalNo"]}
        assert {(m.product_id, m.balance_before, m.balance_after) for m in movements} == {
            (amoxicillin["id"], 5, 2),
            (vitamin_c["id"], 40, 30),
        }

    async def test_partial_dispense_then_resume(
        self, client: AsyncClient, db_session: AsyncSession, two_item_prescription
    ) -> None:
        prescription, amoxicillin, vitamin_c = two_item_prescription
        items = prescription["items"]
        url = f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense"

        first = await client.post(url, json={
            "dispensedItems": [{"itemId": items[0]["id"], "quantityDispensed": 3, "productId": amoxicillin["id"]}],
            "totalAmount": 12.0,
            "amountPaid": 12.0,
        })

        assert first.status_code == 200, first.text
        assert first.json()["data"]["status"] == "partially_dispensed"
        assert await _stock(client, amoxicillin["id"]) == 2
        assert await _stock(client, vitamin_c["id"]) == 40

        dispensal = (await db_session.execute(select(DrugDispensal))).scalars().one()
        assert await _count(db_session, DispensalItem, DispensalItem.dispensal_id == dispensal.id) == 1

        detail = (await client.get(f"{API}/pharmacist/prescriptions/{prescription['id']}")).json()
        assert detail["status"] == "partially_dispensed"
        assert detail["dispensedAt"] is None

        second = await client.post(url, json={
            "dispensedItems": [{"itemId": items[1]["id"], "quantityDispensed": 10}],
            "totalAmount": 5.0,
            "amountPaid": 5.0,
        })

        assert second.status_code == 200, second.text
        assert second.json()["data"]["status"] == "dispensed"
        detail = (await client.get(f"{API}/pharmacist/prescriptions/{prescription['id']}")).json()
        assert detail["amountPaid"] == 17.0
        assert await _count(db_session, DrugDispensal) == 2

    async def test_insufficient_stock_rolls_everything_back(
        self, client: AsyncClient, db_session: AsyncSession, create_drug, create_prescription
    ) -> None:
        plenty = await create_drug(name="Plenty", quantity=100)
        scarce = await create_drug(name="Scarce", quantity=2)
        prescription = await create_prescription([
            {"productId": plenty["id"], "quantityPrescribed": 10},
            {"productId": scarce["id"], "quantityPrescribed": 5},
        ])
        items = prescription["items"]

        response = await client.post(f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense", json={
            "dispensedItems": [
                {"itemId": items[0]["id"], "quantityDispensed": 10},
                {"itemId": items[1]["id"], "quantityDispensed": 5},
            ],
            "totalAmount": 50.0,
            "amountPaid": 50.0,
        })

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["errorCode"] == "INSUFFICIENT_STOCK"
        assert body["message"] == "Insufficient stock for Scarce. Available: 2, Required: 5"

        assert await _stock(client, plenty["id"]) == 100
        assert await _stock(client, scarce["id"]) == 2
        detail = (await client.get(f"{API}/pharmacist/prescriptions/{prescription['id']}")).json()
        assert detail["status"] == "pending"
        assert not any(i["isDispensed"] for i in detail["items"])
        assert await _count(db_session, DrugDispensal) == 0
        assert await _count(db_session, BalanceTransaction) == 0
        assert await _count(db_session, StockMovement, StockMovement.movement_type == MovementType.DISPENSE) == 0

    async def test_lines_on_same_product_are_summed(
        self, client: AsyncClient, create_drug, create_prescription
    ) -> None:
        drug = await create_drug(name="Ibuprofen", quantity=6)
        prescription = await create_prescription([
            {"productId": drug["id"], "quantityPrescribed": 4},
            {"productId": drug["id"], "quantityPrescribed": 4},
        ])
        items = prescription["items"]

        response = await client.post(f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense", json={
            "dispensedItems": [
                {"itemId": items[0]["id"], "quantityDispensed": 4},
                {"itemId": items[1]["id"], "quantityDispensed": 4},
            ],
        })

        assert response.status_code == 422
        assert response.json()["message"] == "Insufficient stock for Ibuprofen. Available: 6, Required: 8"
        assert await _stock(client, drug["id"]) == 6

    async def test_dispensed_prescription_cannot_be_dispensed_again(
        self, client: AsyncClient, db_session: AsyncSession, two_item_prescription
    ) -> None:
        prescription, amoxicillin, _ = two_item_prescription
        items = prescription["items"]
        url = f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense"
        payload = {
            "dispensedItems": [
                {"itemId": items[0]["id"], "quantityDispensed": 3},
                {"itemId": items[1]["id"], "quantityDispensed": 10},
            ],
            "totalAmount": 17.0,
            "amountPaid": 17.0,
        }
        first = await client.post(url, json=payload)
        assert first.status_code == 200, first.text

        response = await client.post(url, json=payload)

        assert response.status_code == 409
        assert await _stock(client, amoxicillin["id"]) == 2
        assert await _count(db_session, DrugDispensal, DrugDispensal.prescription_id == prescription["id"]) == 1
        assert await _count(
            db_session, BalanceTransaction, BalanceTransaction.prescription_id == prescription["id"]
        ) == 1
        detail = (await client.get(f"{API}/pharmacist/prescriptions/{prescription['id']}")).json()
        assert detail["amountPaid"] == 17.0

    async def test_item_already_dispensed_is_rejected(self, client: AsyncClient, two_item_prescription) -> None:
        prescription, amoxicillin, _ = two_item_prescription
        items = prescription["items"]
        url = f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense"
        await client.post(url, json={"dispensedItems": [{"itemId": items[0]["id"], "quantityDispensed": 1}]})

        response = await client.post(url, json={"dispensedItems": [{"itemId": items[0]["id"], "quantityDispensed": 1}]})

        assert response.status_code == 422
        assert await _stock(client, amoxicillin["id"]) == 4

    async def test_unknown_prescription(self, client: AsyncClient) -> None:
        response = await client.post(f"{API}/pharmacist/prescriptions/missing/dispense", json={
            "dispensedItems": [{"itemId": "x", "quantityDispensed": 1}],
        })

        assert response.status_code == 404

    @pytest.mark.parametrize("line, message_part", [
        ({"itemId": "not-an-item", "quantityDispensed": 1}, "not-an-item"),
        ({"quantityDispensed": 0}, "greater than zero"),
        ({"quantityDispensed": 4}, "prescribed"),
        ({"quantityDispensed": 1, "productId": "other-product"}, "does not match"),
    ])
    async def test_invalid_lines(
        self, client: AsyncClient, two_item_prescription, line: dict, message_part: str
    ) -> None:
        prescription, amoxicillin, _ = two_item_prescription
        line = {"itemId": prescription["items"][0]["id"], **line}

        response = await client.post(
            f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense",
            json={"dispensedItems": [line]}
        )

        assert response.status_code == 422
        assert message_part in response.json()["message"]
        assert await _stock(client, amoxicillin["id"]) == 5

    async def test_empty_and_duplicate_lines(self, client: AsyncClient, two_item_prescription) -> None:
        prescription, _, _ = two_item_prescription
        item_id = prescription["items"][0]["id"]
        url = f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense"

        empty = await client.post(url, json={"dispensedItems": []})
        assert empty.status_code == 422

        duplicate = await client.post(url, json={"dispensedItems": [
            {"itemId": item_id, "quantityDispensed": 1},
            {"itemId": item_id, "quantityDispensed": 1},
        ]})
        assert duplicate.status_code == 422
        assert "more than once" in duplicate.json()["message"]

    async def test_no_payment_row_without_payment(
        self, client: AsyncClient, db_session: AsyncSession, two_item_prescription
    ) -> None:
        prescription, _, _ = two_item_prescription

        response = await client.post(f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense", json={
            "dispensedItems": [{"itemId": prescription["items"][1]["id"], "quantityDispensed": 10}],
            "totalAmount": 5.0,
            "amountPaid": 0,
        })

        assert response.status_code == 200
        assert response.json()["data"]["change"] == 0.0
        assert await _count(db_session, BalanceTransaction) == 0

    async def test_negative_amount_is_rejected(self, client: AsyncClient, two_item_prescription) -> None:
        prescription, _, _ = two_item_prescription

        response = await client.post(f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense", json={
            "dispensedItems": [{"itemId": prescription["items"][0]["id"], "quantityDispensed": 1}],
            "amountPaid": -5,
        })

        assert response.status_code == 422

    async def test_resumed_item_cannot_be_dispensed_by_two_requests(
        self, app: FastAPI, client: AsyncClient, db_session: AsyncSession, create_drug, create_prescription
    ) -> None:
        first = await create_drug(name="Artemether", quantity=100)
        contested = await create_drug(name="Lumefantrine", quantity=100)
        last = await create_drug(name="Folic Acid", quantity=100)
        prescription = await create_prescription([
            {"productId": first["id"], "quantityPrescribed": 5},
            {"productId": contested["id"], "quantityPrescribed": 10},
            {"productId": last["id"], "quantityPrescribed": 5},
        ])
        items = prescription["items"]
        url = f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense"
        started = await client.post(url, json={"dispensedItems": [{"itemId": items[0]["id"], "quantityDispensed": 5}]})
        assert started.json()["data"]["status"] == "partially_dispensed"

        line = [{"item_id": items[1]["id"], "quantity_dispensed": 10}]
        async with app.state.database.session() as winner_session, \
                app.state.database.session() as loser_session:
            winner = DispensingService(winner_session)
            loser = DispensingService(loser_session)
            load = loser.prescription_repo.get_for_update

            async def load_then_lose_race(prescription_id: str):
                # The other request commits after this one has read the items
                loaded = await load(prescription_id)
                await winner.dispense(prescription_id, line)
                return loaded

            loser.prescription_repo.get_for_update = load_then_lose_race

            with pytest.raises(ConflictError):
                await loser.dispense(prescription["id"], line)

        assert await _stock(client, contested["id"]) == 90
        assert await _count(db_session, DrugDispensal, DrugDispensal.prescription_id == prescription["id"]) == 2
        assert await _count(
            db_session, StockMovement,
            StockMovement.product_id == contested["id"],
            StockMovement.movement_type == MovementType.DISPENSE
        ) == 1
        detail = (await client.get(f"{API}/pharmacist/prescriptions/{prescription['id']}")).json()
        assert detail["status"] == "partially_dispensed"
        assert [i["isDispensed"] for i in detail["items"]] == [True, True, False]
