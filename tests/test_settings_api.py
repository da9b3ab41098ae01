import pytest

from intake.extensions import db
from intake.models import AuditLog, Product, User

from conftest import ADMIN_EMAIL, PASSWORD, STAFF_EMAIL, login


class TestAuth:

    def test_login_returns_user_and_csrf_token(self, client, seed):
        body = login(client, STAFF_EMAIL).get_json()
        assert body["user"]["email"] == STAFF_EMAIL
        assert body["user"]["roles"] == [{"name": "ROLE_USER", "description": "Usuario"}]
        assert body["csrfToken"]
        assert client.get("/auth/me").get_json()["id"] == seed["staff_id"]

    def test_bad_credentials(self, client, seed):
        response = client.post("/auth/login", json={"email": STAFF_EMAIL, "password": "nope"})
        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, admin_client, client, seed):
        admin_client.put(f"/users/{seed['staff_id']}", json={"isActive": False})
        response = client.post("/auth/login", json={"email": STAFF_EMAIL, "password": PASSWORD})
        assert response.status_code == 400

    def test_logout(self, staff_client):
        assert staff_client.post("/auth/logout").status_code == 204
        assert staff_client.get("/auth/me").status_code == 401

    def test_clients_keep_their_own_user(self, staff_client, admin_client, seed):
        assert staff_client.get("/auth/me").get_json()["id"] == seed["staff_id"]
        assert admin_client.get("/auth/me").get_json()["id"] == seed["admin_id"]
        assert staff_client.get("/auth/me").get_json()["email"] == STAFF_EMAIL

    def test_staff_updates_own_profile(self, app, staff_client, client, seed):
        response = staff_client.put("/auth/me", json={
            "firstName": "Samuel", "password": "newpass1", "currentPassword": PASSWORD,
            "roleNames": ["ROLE_ADMIN"], "isActive": False,
        })
        body = response.get_json()

        assert response.status_code == 200
        assert body["firstName"] == "Samuel"
        assert body["lastName"] == "Staff"
        assert body["roles"][0]["name"] == "ROLE_USER"
        assert body["isActive"] is True

        login(client, STAFF_EMAIL, "newpass1")
        with app.app_context():
            entry = AuditLog.query.filter_by(entity_type="User", action="UPDATE").one()
            assert entry.entity_id == seed["staff_id"]

    def test_password_change_needs_current_password(self, staff_client, client):
        response = staff_client.put("/auth/me", json={"password": "newpass1", "currentPassword": "wrong"})
        assert response.status_code == 400
        assert "currentPassword" in response.get_json()["errors"]

        login(client, STAFF_EMAIL)

    def test_profile_email_must_be_unique(self, staff_client):
        response = staff_client.put("/auth/me", json={"email": ADMIN_EMAIL})
        assert response.status_code == 400
        assert "email" in response.get_json()["errors"]

    def test_seed_admin_only_once(self, client):
        response = client.post("/auth/seed-admin", json={"email": "Root@Example.com", "password": "toor123"})
        assert response.status_code == 201
        assert response.get_json()["email"] == "root@example.com"

        response = client.post("/auth/seed-admin", json={"email": "other@example.com", "password": "x"})
        assert response.status_code == 409


class TestProducts:

    def test_list_and_search(self, staff_client):
        body = staff_client.get("/products?search=cob").get_json()
        assert [p["name"] for p in body["data"]] == ["Cobre"]

    def test_staff_cannot_mutate(self, staff_client):
        response = staff_client.post("/products", json={"name": "Vidrio", "pricePerQuintal": 5})
        assert response.status_code == 403

    def test_create_update_delete(self, app, admin_client):
        created = admin_client.post("/products", json={"name": "Vidrio", "pricePerQuintal": "12,50"})
        assert created.status_code == 201
        product_id = created.get_json()["id"]
        assert created.get_json()["pricePerQuintal"] == 12.5

        updated = admin_client.put(f"/products/{product_id}", json={"pricePerQuintal": 15})
        assert updated.get_json()["pricePerQuintal"] == 15.0
        assert updated.get_json()["name"] == "Vidrio"

        assert admin_client.delete(f"/products/{product_id}").status_code == 204
        assert admin_client.get(f"/products/{product_id}").status_code == 404

        with app.app_context():
            actions = [a.action for a in AuditLog.query.filter_by(entity_type="Product").order_by(AuditLog.id)]
        assert actions == ["CREATE", "UPDATE", "DELETE"]

    @pytest.mark.parametrize("payload", [{"name": "", "pricePerQuintal": 1}, {"name": "X", "pricePerQuintal": -1}])
    def test_validation(self, admin_client, payload):
        assert admin_client.post("/products", json=payload).status_code == 400

    def test_duplicate_name(self, app, admin_client):
        response = admin_client.post("/products", json={"name": "Cobre", "pricePerQuintal": 1})
        assert response.status_code == 400
        assert "name" in response.get_json()["errors"]
        with app.app_context():
            assert Product.query.filter_by(name="Cobre").count() == 1

    def test_product_in_use_cannot_be_deleted(self, admin_client, header, seed):
        report = admin_client.post("/reports", json=header).get_json()
        admin_client.post(f"/reports/{report['id']}/items", json={"productId": seed["copper_id"], "weight": 1})

        assert admin_client.delete(f"/products/{seed['copper_id']}").status_code == 409


class TestSuppliers:

    def test_crud(self, admin_client):
        created = admin_client.post("/suppliers", json={"name": "Metales Sur", "phone": "1234"})
        assert created.status_code == 201
        supplier_id = created.get_json()["id"]

        updated = admin_client.put(f"/suppliers/{supplier_id}", json={"representative": "Marta"})
        assert updated.get_json()["representative"] == "Marta"
        assert updated.get_json()["phone"] == "1234"

        assert admin_client.delete(f"/suppliers/{supplier_id}").status_code == 204

    def test_name_required(self, admin_client):
        assert admin_client.post("/suppliers", json={"name": " "}).status_code == 400

    def test_supplier_with_reports_cannot_be_deleted(self, admin_client, header, seed):
        admin_client.post("/reports", json=header)
        assert admin_client.delete(f"/suppliers/{seed['supplier_id']}").status_code == 409


class TestConfig:

    def test_read(self, staff_client):
        assert staff_client.get("/config").get_json()["extraPercentage"] == 10.0

    def test_update_admin_only(self, staff_client, admin_client):
        assert staff_client.put("/config", json={"extraPercentage": 5}).status_code == 403

        response = admin_client.put("/config", json={"extraPercentage": 7.5})
        assert response.status_code == 200
        assert response.get_json()["extraPercentage"] == 7.5

    @pytest.mark.parametrize("value", [-1, 101, "abc", None])
    def test_bounds(self, admin_client, value):
        response = admin_client.put("/config", json={"extraPercentage": value})
        assert response.status_code == 400
        assert "extraPercentage" in response.get_json()["errors"]

    def test_created_with_default_when_missing(self, app, client):
        with app.app_context():
            user = User(first_name="A", last_name="B", email="a@b.c", is_admin=False, is_active=True)
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.commit()
        login(client, "a@b.c")

        assert client.get("/config").get_json()["extraPercentage"] == 0.0


class TestUsers:

    def test_admin_only(self, staff_client):
        assert staff_client.get("/users").status_code == 403

    def test_create_and_list(self, admin_client):
        response = admin_client.post("/users", json={
            "firstName": "Nora", "lastName": "Diaz", "email": "NORA@example.com",
            "password": "abcdef", "roleNames": ["ROLE_ADMIN"],
        })
        assert response.status_code == 201
        body = response.get_json()
        assert body["email"] == "nora@example.com"
        assert body["roles"][0]["name"] == "ROLE_ADMIN"
        assert "password" not in body and "passwordHash" not in body

        emails = [u["email"] for u in admin_client.get("/users").get_json()["data"]]
        assert emails == [ADMIN_EMAIL, "nora@example.com", STAFF_EMAIL]

    def test_validation(self, admin_client):
        response = admin_client.post("/users", json={
            "firstName": "", "lastName": "X", "email": STAFF_EMAIL, "password": "123",
        })
        assert response.status_code == 400
        assert set(response.get_json()["errors"]) == {"firstName", "email", "password"}

    def test_roles(self, admin_client, seed):
        response = admin_client.put(f"/users/{seed['staff_id']}/roles", json={"roleNames": ["ROLE_ADMIN"]})
        assert response.get_json()["roles"][0]["name"] == "ROLE_ADMIN"

        response = admin_client.put(f"/users/{seed['staff_id']}/roles", json={"roleNames": ["ROLE_ROOT"]})
        assert response.status_code == 400

    def test_admin_cannot_lock_themselves_out(self, admin_client, seed):
        admin_id = seed["admin_id"]
        assert admin_client.delete(f"/users/{admin_id}").status_code == 409
        assert admin_client.put(f"/users/{admin_id}", json={"isActive": False}).status_code == 409
        assert admin_client.put(f"/users/{admin_id}/roles", json={"roleNames": ["ROLE_USER"]}).status_code == 409

    def test_delete(self, admin_client, seed):
        assert admin_client.delete(f"/users/{seed['staff_id']}").status_code == 204
        assert admin_client.get(f"/users/{seed['staff_id']}").status_code == 404

    def test_roles_catalogue(self, staff_client):
        names = [r["name"] for r in staff_client.get("/roles").get_json()]
        assert names == ["ROLE_ADMIN", "ROLE_USER"]
