from govlearn.health.router import router


__all__ = ["router"]
