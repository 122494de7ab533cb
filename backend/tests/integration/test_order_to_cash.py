"""
Order to cash: Sales Order -> Work Order -> QC gates -> Pack -> Dispatch
-> Ship -> Complete -> Invoice -> Receipt

The shop floor is driven through the services, everything a customer
facing desk touches goes through the API. Each step asserts, so the first
failure shows where the chain breaks.
"""
from decimal import Decimal

import pytest

from plantops.models import WorkOrder
from tests.factories import create_packed_work_order, create_test_sales_order


@pytest.mark.integration
class TestOrderToCash:

    def test_full_chain(
        self, client, db_session, logistics_headers, production_headers, accounts_headers, sales_headers,
    ):
        # 1. Approved order generates one work order per line
        so = create_test_sales_order(db_session, approve=True)
        assert so.status == "approved"
        wo = db_session.query(WorkOrder).filter(WorkOrder.id == so.lines[0].work_order_id).one()
        assert wo.financial_snapshot["line"]["price_per_pc"] == "2.50"

        # 2. Material, first piece, production, final QC, DQC release and packing
        wo, batch, carton = create_packed_work_order(db_session, wo=wo)
        db_session.commit()
        assert batch.dispatch_allowed is True
        assert carton.status == "ready_for_dispatch"

        # 3. Dispatch the carton and ship it
        dispatch = client.post(
            "/api/v1/dispatch/dispatches",
            json={"work_order_id": wo.id, "production_batch_id": batch.id, "quantity": 100,
                  "carton_id": carton.id},
            headers=logistics_headers,
        )
        assert dispatch.status_code == 201, dispatch.json()
        dispatch_id = dispatch.json()["id"]

        shipment = client.post(
            "/api/v1/dispatch/shipments",
            json={"sales_order_id": so.id, "work_order_id": wo.id, "carrier": "BlueDart",
                  "dispatch_ids": [dispatch_id]},
            headers=logistics_headers,
        )
        assert shipment.status_code == 201
        shipment_id = shipment.json()["id"]
        for step in ("shipped", "delivered"):
            moved = client.post(
                f"/api/v1/dispatch/shipments/{shipment_id}/status", json={"status": step},
                headers=logistics_headers,
            )
            assert moved.status_code == 200, moved.json()
            assert moved.json()["status"] == step
        assert moved.json()["batch_id"] == batch.id

        # 4. Close the work order; the sales order follows
        check = client.get(f"/api/v1/work-orders/{wo.id}/completion-status", headers=production_headers)
        assert check.json()["can_complete"] is True
        assert check.json()["totals"]["dispatched"] == 100

        completed = client.post(f"/api/v1/work-orders/{wo.id}/complete", headers=production_headers)
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"
        assert completed.json()["qty_dispatched"] == 100

        order = client.get(f"/api/v1/sales-orders/{so.id}", headers=sales_headers)
        assert order.json()["status"] == "fulfilled"

        # 5. Bill the dispatch at the order price with GST
        invoice = client.post(
            "/api/v1/finance/invoices",
            json={"customer_id": so.customer_id, "sales_order_id": so.id, "gst_percent": "18",
                  "from_dispatches": [dispatch_id]},
            headers=accounts_headers,
        )
        assert invoice.status_code == 201, invoice.json()
        invoice_id = invoice.json()["id"]
        assert Decimal(invoice.json()["subtotal"]) == Decimal("250.00")
        assert Decimal(invoice.json()["total_amount"]) == Decimal("295.00")

        issued = client.post(f"/api/v1/finance/invoices/{invoice_id}/issue", headers=accounts_headers)
        assert issued.status_code == 200
        assert issued.json()["status"] == "issued"

        # 6. Collect in two receipts
        for amount, expected in (("200.00", "part_paid"), ("95.00", "paid")):
            receipt = client.post(
                "/api/v1/finance/receipts",
                json={"customer_id": so.customer_id, "amount": amount, "payment_mode": "bank_transfer"},
                headers=accounts_headers,
            )
            assert receipt.status_code == 201
            allocation = client.post(
                f"/api/v1/finance/receipts/{receipt.json()['id']}/allocations",
                json={"invoice_id": invoice_id, "amount": amount},
                headers=accounts_headers,
            )
            assert allocation.status_code == 201, allocation.json()
            current = client.get(f"/api/v1/finance/invoices/{invoice_id}", headers=accounts_headers).json()
            assert current["status"] == expected

        assert Decimal(current["balance_amount"]) == Decimal("0.00")

        # 7. The trail is on record
        trail = client.get(f"/api/v1/audit/sales_orders/{so.id}", headers=sales_headers).json()
        assert [entry["action"] for entry in trail] == ["SO_CREATED", "SO_APPROVED", "SO_FULFILLED"]

    def test_second_invoice_for_same_dispatch_is_rejected(self, client, db_session, accounts_headers):
        so = create_test_sales_order(db_session, approve=True)
        wo = db_session.query(WorkOrder).filter(WorkOrder.id == so.lines[0].work_order_id).one()
        wo, batch, carton = create_packed_work_order(db_session, wo=wo)

        from plantops.services import dispatch_service
        dispatch = dispatch_service.create_dispatch(db_session, wo, batch, 100, carton=carton)
        db_session.commit()

        payload = {"customer_id": so.customer_id, "from_dispatches": [dispatch.id]}
        assert client.post("/api/v1/finance/invoices", json=payload, headers=accounts_headers).status_code == 201
        duplicate = client.post("/api/v1/finance/invoices", json=payload, headers=accounts_headers)
        assert duplicate.status_code == 409
