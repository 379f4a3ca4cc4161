from .base import RenderEngine
from .session import RenderSession
from .weasyprint_engine import WeasyPrintEngine
from .wkhtmltopdf_engine import WkhtmltopdfEngine

def get_renderer(name: str, **kwargs) -> RenderEngine:
    engines = {
        'weasyprint': WeasyPrintEngine,
        'wkhtmltopdf': WkhtmltopdfEngine,
    }

    engine_class = engines.get((name or "").lower())
    if not engine_class:
        raise ValueError(f"Unsupported render engine: {name}")

    return engine_class(**kwargs)

__all__ = ['RenderEngine', 'RenderSession', 'WeasyPrintEngine', 'WkhtmltopdfEngine', 'get_renderer']
