from configurator.models.catalog_product import CatalogProduct
from configurator.models.catalog_group import CatalogGroup
from configurator.models.catalog_option import CatalogOption
from configurator.models.catalog_product_group import CatalogProductGroup
