"""
Tests for the product catalog and the public professional page.
"""

from conftest import auth_headers, make_product, make_profile

from divan.models import Product


class TestProducts:
    """Only the owning professional manages products; anyone can list active ones."""

    def test_create_product(self, client, db, professional):
        response = client.post(
            "/api/products",
            json={"title": "Pacote mensal", "appointmentType": "video", "sessionsCount": 4, "priceCents": 20000},
            headers=auth_headers(professional),
        )
        assert response.status_code == 201
        product = response.json()["product"]
        assert product["professionalId"] == professional.id
        assert product["sessionsCount"] == 4

    def test_client_cannot_create_product(self, client, client_profile):
        response = client.post(
            "/api/products",
            json={"title": "Pacote", "appointmentType": "chat", "sessionsCount": 1, "priceCents": 5000},
            headers=auth_headers(client_profile),
        )
        assert response.status_code == 403

    def test_invalid_product_payload(self, client, professional):
        response = client.post(
            "/api/products",
            json={"title": "X", "appointmentType": "phone", "sessionsCount": 0, "priceCents": -1},
            headers=auth_headers(professional),
        )
        assert response.status_code == 400
        assert set(response.json()["fields"]) >= {"title", "appointmentType", "sessionsCount", "priceCents"}

    def test_public_listing_filters_type_and_inactive(self, client, db, professional):
        make_product(db, professional, "video")
        make_product(db, professional, "chat")
        hidden = make_product(db, professional, "video", sessions_count=8)
        hidden.is_active = False
        db.commit()

        response = client.get(f"/api/products?professionalId={professional.id}&type=video")
        products = response.json()["products"]
        assert len(products) == 1
        assert products[0]["appointmentType"] == "video"

    def test_other_professional_cannot_edit(self, client, db, professional):
        product = make_product(db, professional)
        other = make_profile(db, name="Outro", email="outro@divan.com.br", role="professional")

        response = client.patch(
            f"/api/products/{product.id}", json={"priceCents": 1}, headers=auth_headers(other)
        )
        assert response.status_code == 403

    def test_update_and_deactivate(self, client, db, professional):
        product = make_product(db, professional)
        headers = auth_headers(professional)

        response = client.patch(f"/api/products/{product.id}", json={"priceCents": 25000}, headers=headers)
        assert response.json()["product"]["priceCents"] == 25000

        assert client.patch(f"/api/products/{product.id}", json={}, headers=headers).status_code == 400

        assert client.delete(f"/api/products/{product.id}", headers=headers).status_code == 200
        db.expire_all()
        assert db.get(Product, product.id).is_active is False


class TestPublicProfessional:
    def test_returns_professional_and_active_products(self, client, db, professional):
        make_product(db, professional)
        response = client.get("/api/public/professional")
        assert response.status_code == 200
        body = response.json()
        assert body["professional"]["id"] == professional.id
        assert len(body["products"]) == 1

    def test_missing_professional_is_404(self, client):
        assert client.get("/api/public/professional").status_code == 404
