import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient

API = "/api/v1"


@pytest.mark.integration
class TestDashboard:
    """GET /pharmacist/dashboard."""

    async def test_empty_dashboard(self, client: AsyncClient) -> None:
        response = await client.get(f"{API}/pharmacist/dashboard")

        assert response.status_code == 200
        body = response.json()
        assert body["statistics"] == {
            "pendingPrescriptions": 0,
            "dispensedToday": 0,
            "revenue": 0.0,
            "patientsServed": 0,
        }
        assert body["priorityPrescriptions"] == []
        assert body["inventoryAlerts"] == {"lowStock": [], "expiring": []}
        assert body["recentActivity"] == []

    async def test_daily_figures_after_dispensing(self, client: AsyncClient, create_drug, create_prescription) -> None:
        drug = await create_drug(name="Metronidazole", quantity=50, price=3.0)
        item = [{"productId": drug["id"], "quantityPrescribed": 2}]
        dispensed = await create_prescription(item)
        await create_prescription(item)
        await client.post(f"{API}/pharmacist/prescriptions/{dispensed['id']}/dispense", json={
            "dispensedItems": [{"itemId": dispensed["items"][0]["id"], "quantityDispensed": 2}],
            "totalAmount": 6.0,
            "amountPaid": 10.0,
        })

        body = (await client.get(f"{API}/pharmacist/dashboard")).json()

        assert body["statistics"] == {
            "pendingPrescriptions": 1,
            "dispensedToday": 1,
            "revenue": 10.0,
            "patientsServed": 1,
        }
        activity = body["recentActivity"]
        assert len(activity) == 1
        assert activity[0]["prescriptionNo"] == dispensed["prescriptionNo"]
        assert activity[0]["patientName"] == "Ada Obi"
        assert activity[0]["amount"] == 6.0

    async def test_priority_prescriptions(self, client: AsyncClient, create_drug, create_prescription) -> None:
        drug = await create_drug()
        item = [{"productId": drug["id"], "quantityPrescribed": 1}]
        await create_prescription(item, priority="normal")
        urgent = await create_prescription(item, priority="urgent")
        emergency = await create_prescription(item, priority="emergency")

        body = (await client.get(f"{API}/pharmacist/dashboard")).json()

        entries = body["priorityPrescriptions"]
        assert [e["id"] for e in entries] == [emergency["id"], urgent["id"]]
        assert entries[0]["physician"] == "Dr. Grace Hopper"
        assert entries[0]["patientName"] == "Ada Obi"

    async def test_partly_dispensed_counts_as_pending(
        self, client: AsyncClient, create_drug, create_prescription
    ) -> None:
        first = await create_drug(name="Artemether")
        second = await create_drug(name="Lumefantrine")
        prescription = await create_prescription([
            {"productId": first["id"], "quantityPrescribed": 2},
            {"productId": second["id"], "quantityPrescribed": 2},
        ], priority="emergency")
        await client.post(f"{API}/pharmacist/prescriptions/{prescription['id']}/dispense", json={
            "dispensedItems": [{"itemId": prescription["items"][0]["id"], "quantityDispensed": 2}],
        })

        body = (await client.get(f"{API}/pharmacist/dashboard")).json()

        assert body["statistics"]["pendingPrescriptions"] == 1
        assert body["statistics"]["dispensedToday"] == 0
        assert [e["id"] for e in body["priorityPrescriptions"]] == [prescription["id"]]

    async def test_inventory_alerts(self, client: AsyncClient, create_drug) -> None:
        now = datetime.utcnow()
        await create_drug(name="Low", quantity=2, reorderLevel=5)
        await create_drug(name="Lower", quantity=1)
        await create_drug(name="Empty", quantity=0)
        await create_drug(name="Healthy", quantity=90)
        await create_drug(name="Expiring", quantity=90, expiryDate=(now + timedelta(days=5)).isoformat())
        await create_drug(name="Expired", quantity=90, expiryDate=(now - timedelta(days=5)).isoformat())
        await create_drug(name="Far", quantity=90, expiryDate=(now + timedelta(days=300)).isoformat())

        alerts = (await client.get(f"{API}/pharmacist/dashboard")).json()["inventoryAlerts"]

        assert [(a["name"], a["current"], a["reorderLevel"]) for a in alerts["lowStock"]] == [
            ("Lower", 1, 10),
            ("Low", 2, 5),
        ]
        # Expired stock is listed first, as the stock listing also flags it
        assert [a["name"] for a in alerts["expiring"]] == ["Expired", "Expiring"]
