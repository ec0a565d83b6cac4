from stock_api.models.product import Product

__all__ = ["Product"]
