"""
Tests for order API views.
"""

import uuid

import pytest
from django.contrib.auth import get_user_model
from django.urls import reverse
from rest_framework.test import APIClient

from settlement.tests.factories import OrderFactory

User = get_user_model()


@pytest.fixture
def customer(db):
    return User.objects.create_user(username="customer", password="testpass123")


@pytest.fixture
def customer_client(customer):
    client = APIClient()
    client.force_authenticate(user=customer)
    return client


class TestOrderCreateView:
    def test_creates_order(self, customer_client, customer):
        response = customer_client.post(
            reverse("orders:order_create"),
            {
                "vendor_groups": [
                    {"vendor_id": "chef-1", "vendor_role": "chef", "subtotal": 10000},
                    {"vendor_id": "rx-1", "vendor_role": "pharmacy", "subtotal": 2000},
                ],
                "delivery_fee": 1500,
            },
            format="json",
        )

        assert response.status_code == 201
        assert response.data["customer_id"] == str(customer.pk)
        assert response.data["total_amount"] == 13500
        assert len(response.data["vendor_groups"]) == 2
        assert len(response.data["child_orders"]) == 2

    def test_rejects_rider_as_vendor_role(self, customer_client):
        response = customer_client.post(
            reverse("orders:order_create"),
            {"vendor_groups": [{"vendor_id": "r-1", "vendor_role": "rider", "subtotal": 100}]},
            format="json",
        )

        assert response.status_code == 400

    def test_rejects_empty_groups(self, customer_client):
        response = customer_client.post(
            reverse("orders:order_create"), {"vendor_groups": []}, format="json"
        )

        assert response.status_code == 400

    def test_requires_authentication(self, db):
        response = APIClient().post(reverse("orders:order_create"), {}, format="json")

        assert response.status_code in (401, 403)


class TestOrderDetailView:
    def test_own_order(self, customer_client, customer):
        order = OrderFactory(customer_id=str(customer.pk))

        response = customer_client.get(
            reverse("orders:order_detail", kwargs={"order_id": order.id})
        )

        assert response.status_code == 200
        assert response.data["order_number"] == order.order_number

    def test_other_customers_order_is_hidden(self, customer_client):
        order = OrderFactory(customer_id="someone-else")

        response = customer_client.get(
            reverse("orders:order_detail", kwargs={"order_id": order.id})
        )

        assert response.status_code == 404

    def test_staff_sees_any_order(self, db):
        staff = User.objects.create_user(username="staff", password="x", is_staff=True)
        client = APIClient()
        client.force_authenticate(user=staff)
        order = OrderFactory(customer_id="someone-else")

        response = client.get(reverse("orders:order_detail", kwargs={"order_id": order.id}))

        assert response.status_code == 200

    def test_unknown_order(self, customer_client):
        response = customer_client.get(
            reverse("orders:order_detail", kwargs={"order_id": uuid.uuid4()})
        )

        assert response.status_code == 404
