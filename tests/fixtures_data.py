"""Catálogo reutilizável para cenários de teste do configurador."""

from decimal import Decimal

from configurator.schemas.catalog import Product, ProductGroup, ProductOption
from configurator.services.catalog_backend import InMemoryCatalogBackend
from configurator.services.catalog_cache import CatalogCache


def option(option_id, product_id, name, price_increase="0", max_quantity=1):
    return ProductOption(
        id=option_id,
        product_id=product_id,
        product_name=name,
        max_quantity=max_quantity,
        price_increase=Decimal(price_increase),
    )


def group(group_id, name, options, min_quantity=0, max_quantity=1):
    return ProductGroup(
        id=group_id,
        name=name,
        min_quantity=min_quantity,
        max_quantity=max_quantity,
        options=list(options),
    )


def product(product_id, name, price="0", groups=(), composition_type="SELECTABLE"):
    return Product(
        id=product_id,
        name=name,
        price=Decimal(price),
        composition_type=composition_type if groups else "SIMPLE",
        product_groups=list(groups),
    )


def shallow(full_product):
    """Produto como o catálogo devolve: grupos sem opções."""
    return full_product.model_copy(
        update={"product_groups": [entry.model_copy(update={"options": []}) for entry in full_product.product_groups]}
    )


# Hambúrguer: um grupo obrigatório "Pão" (min 1, max 1)
PAO_BRIOCHE = option(101, 201, "Pão Brioche")
PAO_AUSTRALIANO = option(102, 202, "Pão Australiano", "10")
GRUPO_PAO = group(10, "Pão", [PAO_BRIOCHE, PAO_AUSTRALIANO], min_quantity=1, max_quantity=1)
HAMBURGUER = product(1, "Hambúrguer", "30", [GRUPO_PAO])

# Combo: lanche obrigatório (que exige configuração) + bebidas opcionais
LANCHE_HAMBURGUER = option(301, 1, "Hambúrguer")
REFRIGERANTE = option(311, 211, "Refrigerante", "5", max_quantity=2)
SUCO = option(312, 212, "Suco", "7")
GRUPO_LANCHE = group(20, "Lanche", [LANCHE_HAMBURGUER], min_quantity=1, max_quantity=1)
GRUPO_BEBIDA = group(21, "Bebida", [REFRIGERANTE, SUCO], min_quantity=0, max_quantity=2)
COMBO = product(2, "Combo", "40", [GRUPO_LANCHE, GRUPO_BEBIDA])

# Pizza: sabores opcionais, cada sabor com borda opcional
BORDA_CATUPIRY = option(411, 311, "Catupiry", "5")
GRUPO_BORDA = group(31, "Borda", [BORDA_CATUPIRY], min_quantity=0, max_quantity=1)
CALABRESA = option(401, 301, "Calabresa", "20", max_quantity=2)
GRUPO_SABORES = group(30, "Sabores", [CALABRESA], min_quantity=0, max_quantity=2)
PIZZA = product(3, "Pizza", "100", [GRUPO_SABORES])

SIMPLE_PRODUCTS = [
    product(201, "Pão Brioche"),
    product(202, "Pão Australiano"),
    product(211, "Refrigerante"),
    product(212, "Suco"),
    product(311, "Catupiry"),
]
SABOR_CALABRESA = product(301, "Calabresa", "0", [GRUPO_BORDA])

# Kit -> Menu -> Hambúrguer: três níveis obrigatórios
LANCHE_DO_MENU = option(461, 1, "Hambúrguer")
GRUPO_LANCHE_MENU = group(50, "Lanche do menu", [LANCHE_DO_MENU], min_quantity=1, max_quantity=1)
MENU = product(5, "Menu", "0", [GRUPO_LANCHE_MENU])
MENU_DO_KIT = option(451, 5, "Menu", "3")
GRUPO_MENU = group(40, "Menu", [MENU_DO_KIT], min_quantity=1, max_quantity=1)
KIT = product(4, "Kit", "50", [GRUPO_MENU])

ALL_PRODUCTS = [HAMBURGUER, COMBO, PIZZA, SABOR_CALABRESA, MENU, KIT, *SIMPLE_PRODUCTS]
ALL_GROUPS = [GRUPO_PAO, GRUPO_LANCHE, GRUPO_BEBIDA, GRUPO_SABORES, GRUPO_BORDA, GRUPO_LANCHE_MENU, GRUPO_MENU]


def remote_backend():
    """Backend que serve produtos rasos e grupos completos, como a API de catálogo."""
    return InMemoryCatalogBackend(
        products=[shallow(entry) for entry in ALL_PRODUCTS],
        groups=ALL_GROUPS,
    )


def preloaded_cache():
    """Cache com todo o catálogo já hidratado (dispensa event loop)."""
    cache = CatalogCache(remote_backend())
    for entry in ALL_PRODUCTS:
        cache.store_product(entry)
    return cache
