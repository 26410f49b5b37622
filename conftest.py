import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# La configuración se lee al importar la app: la base de tests es SQLite
_TEST_DIR = tempfile.mkdtemp(prefix="arca-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["ARCA_TOKEN_CACHE_BACKEND"] = "memory"

from cryptography import x509  # noqa: E402
from cryptography.hazmat.primitives import hashes, serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from cryptography.x509.oid import NameOID  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.database.database import Base, engine, SessionLocal  # noqa: E402
from app.modules.arca import dependencies as arca_dependencies  # noqa: E402
from app.modules.auth.models import User  # noqa: E402
from app.modules.auth.utils import hash_password, create_access_token  # noqa: E402
from app.modules.certificates.models import Certificate  # noqa: E402
from app.modules.clients.models import Client  # noqa: E402
from app.modules.points_of_sale.models import PointOfSale  # noqa: E402

TEST_CUIT = "20123456786"
OTHER_CUIT = "30712345671"
TEST_PASSWORD = "password123"


@pytest.fixture(autouse=True)
def setup_database():
    """Tablas nuevas para cada test y caché de tokens vacía."""
    Base.metadata.create_all(bind=engine)
    arca_dependencies.token_cache.clear()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api_client():
    return TestClient(app)


def make_key_pair():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def make_certificate(
    cuit: str = TEST_CUIT,
    key=None,
    not_before: datetime = None,
    not_after: datetime = None,
    serial_text: str = "CUIT {cuit}",
    extra_attributes=(),
):
    """Certificado autofirmado con el CUIT en serialNumber. Devuelve (cert_pem, key_pem)."""
    key = key or make_key_pair()
    now = datetime.now(timezone.utc)
    not_before = not_before or now - timedelta(days=1)
    not_after = not_after or now + timedelta(days=365)
    attributes = [
        x509.NameAttribute(NameOID.COUNTRY_NAME, "AR"),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Empresa de Prueba SA"),
        x509.NameAttribute(NameOID.COMMON_NAME, "facturacion"),
    ]
    if serial_text:
        attributes.append(x509.NameAttribute(NameOID.SERIAL_NUMBER, serial_text.format(cuit=cuit)))
    attributes.extend(extra_attributes)
    name = x509.Name(attributes)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .sign(key, hashes.SHA256())
    )
    cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode()
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    return cert_pem, key_pem


@pytest.fixture
def certificate_pair():
    return make_certificate()


@pytest.fixture
def sample_user(db_session):
    user = User(
        email="usuario@empresa.com.ar",
        password_hash=hash_password(TEST_PASSWORD),
        name="Usuario de Prueba",
        company="Empresa de Prueba SA",
        tax_id=TEST_CUIT,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def other_user(db_session):
    user = User(
        email="otro@empresa.com.ar",
        password_hash=hash_password(TEST_PASSWORD),
        name="Otro Usuario",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(sample_user):
    token = create_access_token({"sub": str(sample_user.id), "email": sample_user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_client(db_session, sample_user):
    client = Client(
        user_id=sample_user.id,
        tax_id=TEST_CUIT,
        tax_id_type="CUIT",
        name="Cliente de Prueba SRL",
        email="cliente@prueba.com.ar",
        iva_condition="RI",
    )
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


@pytest.fixture
def sample_point_of_sale(db_session, sample_user):
    pos = PointOfSale(user_id=sample_user.id, number=1, name="Casa Central", is_production=False)
    db_session.add(pos)
    db_session.commit()
    db_session.refresh(pos)
    return pos


@pytest.fixture
def sample_certificate(db_session, sample_user, certificate_pair):
    """Certificado activo de homologación para el CUIT del cliente de prueba."""
    cert_pem, key_pem = certificate_pair
    certificate = Certificate(
        user_id=sample_user.id,
        cuit=TEST_CUIT,
        certificate=cert_pem,
        private_key=key_pem,
        is_production=False,
        expires_at=datetime.now(timezone.utc) + timedelta(days=365),
        is_active=True,
    )
    db_session.add(certificate)
    db_session.commit()
    db_session.refresh(certificate)
    return certificate
