from appduka.models.catalog import AppStatus, CatalogApp  # noqa: F401
from appduka.models.profile import Profile, ProfileRole  # noqa: F401
from appduka.models.review import Review  # noqa: F401
