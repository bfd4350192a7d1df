from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from authcore.core.config import Settings
from authcore.infrastructure.db import bootstrap, mongo
from authcore.repositories.refresh_token_repo import InMemoryRefreshTokenStore, MongoRefreshTokenStore
from authcore.services import token_service
from authcore.services.token_service import TokenLifecycleManager, build_token_manager

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


class FakeIndexColl:
    def __init__(self):
        self.indexes = []

    def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))


class FakeDb:
    def __init__(self, existing=()):
        self.existing = list(existing)
        self.created = {}
        self.colls = {}

    def command(self, cmd):
        if cmd["collMod"] not in self.existing:
            raise OperationFailure("ns does not exist")
        return {"ok": 1}

    def list_collection_names(self):
        return list(self.existing)

    def create_collection(self, name, **kwargs):
        self.created[name] = kwargs
        self.existing.append(name)

    def __getitem__(self, name):
        return self.colls.setdefault(name, FakeIndexColl())


def _settings(**overrides):
    base = dict(_env_file=None, jwt_secret=ACCESS_SECRET, jwt_refresh_secret=REFRESH_SECRET)
    base.update(overrides)
    return Settings(**base)


def test_bootstrap_creates_collection_with_validator_and_indexes():
    db = FakeDb()
    bootstrap.ensure_refresh_token_collection(db, "refresh_token")
    assert "$jsonSchema" in db.created["refresh_token"]["validator"]
    names = [kw["name"] for _, kw in db["refresh_token"].indexes]
    assert names == ["uniq_token_hash", "ix_owner_revoked", "ttl_expires_at"]
    ttl = dict(db["refresh_token"].indexes[2][1])
    assert ttl["expireAfterSeconds"] == 0


def test_bootstrap_is_repeatable():
    db = FakeDb(existing=["refresh_token"])
    bootstrap.ensure_refresh_token_collection(db)
    bootstrap.ensure_refresh_token_collection(db)
    assert db.created == {}
    # La especificación de índices no se consume entre llamadas
    assert len(db["refresh_token"].indexes) == 6
    assert all("keys" in spec for spec in bootstrap.REFRESH_TOKEN_INDEXES)


def test_build_token_manager_with_explicit_store():
    store = InMemoryRefreshTokenStore()
    manager = build_token_manager(_settings(jwt_bind_to_device=True), store)
    assert isinstance(manager, TokenLifecycleManager)
    assert manager.ledger.store is store
    assert manager.binding.bind_to_device is True


def test_build_token_manager_uses_mongo(monkeypatch):
    db = FakeDb()
    monkeypatch.setattr(token_service, "get_db", lambda: db)
    manager = build_token_manager(_settings(refresh_token_collection="rt"))
    assert isinstance(manager.ledger.store, MongoRefreshTokenStore)
    assert "rt" in db.created


def test_client_kwargs_tls_rules():
    local = mongo._client_kwargs(_settings(mongo_uri="mongodb://localhost:27017"))
    assert "tls" not in local
    srv = mongo._client_kwargs(_settings(mongo_uri="mongodb+srv://cluster.example.net"))
    assert "tlsCAFile" in srv and "tls" not in srv
    remote = mongo._client_kwargs(_settings(mongo_uri="mongodb://db.internal:27017", mongo_tls_insecure=True))
    assert remote["tls"] is True
    assert remote["tlsAllowInvalidCertificates"] is True


def test_init_mongo_failure_leaves_db_unset(monkeypatch):
    class DownClient:
        def __init__(self, *args, **kwargs):
            self.admin = self

        def command(self, name):
            raise ServerSelectionTimeoutError("no servers")

    monkeypatch.setattr(mongo, "MongoClient", DownClient)
    assert mongo.init_mongo(_settings()) is False
    assert mongo.db_ready() is False
