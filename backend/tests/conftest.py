import os, sys, pytest
# Ensure the backend directory is on path so 'parabellum' can be imported from a checkout
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from parabellum import create_app, get_db
from parabellum.models.identity import Base
# Import all model modules to ensure tables are registered before create_all
import parabellum.models.customer  # noqa: F401
import parabellum.models.quote  # noqa: F401
import parabellum.models.audit  # noqa: F401


@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'DATABASE_URL': 'sqlite+pysqlite:///:memory:', 'TESTING': True})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app


@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()


@pytest.fixture()
def app_ctx(app_instance):
    with app_instance.app_context():
        yield app_instance
