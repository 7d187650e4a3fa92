"""Plain records exchanged between services and repositories."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

CART_ACTIVE = "active"
CART_CONVERTED = "converted"
ORDER_PROCESSING = "processando"
POINTS_PURCHASE = "compra"


@dataclass(slots=True)
class Store:
    id: str
    nome: str
    logo_url: Optional[str] = None
    descricao: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary(self) -> Dict[str, Any]:
        return {"id": self.id, "nome": self.nome, "logo_url": self.logo_url}


@dataclass(slots=True)
class Product:
    id: str
    nome: str
    preco: float
    estoque: int
    loja_id: str
    categoria: Optional[str] = None
    imagem_url: Optional[str] = None
    descricao: Optional[str] = None
    avaliacao: Optional[float] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def cart_summary(self) -> Dict[str, Any]:
        """Subset of product columns embedded in each cart line."""
        return {
            "id": self.id,
            "nome": self.nome,
            "preco": self.preco,
            "imagem_url": self.imagem_url,
            "categoria": self.categoria,
            "estoque": self.estoque,
            "loja_id": self.loja_id,
        }


@dataclass(slots=True)
class Review:
    id: str
    produto_id: str
    cliente_id: str
    nota: int
    comentario: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Cart:
    id: str
    user_id: str
    status: str = CART_ACTIVE


@dataclass(slots=True)
class CartItem:
    id: str
    cart_id: str
    product_id: str
    quantity: int
    price_at_add: float


@dataclass(slots=True)
class Address:
    id: str
    user_id: str
    nome: str
    cep: str
    logradouro: str
    numero: str
    bairro: str
    cidade: str
    estado: str
    complemento: Optional[str] = None
    principal: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class Order:
    cliente_id: str
    endereco_entrega: Dict[str, Any]
    forma_pagamento: str
    valor_total: float
    pontos_ganhos: int
    status: str = ORDER_PROCESSING
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class OrderItem:
    order_id: str
    produto_id: str
    quantidade: int
    preco_unitario: float
    subtotal: float
    id: Optional[str] = None


@dataclass(slots=True)
class PointsTransaction:
    user_id: str
    pontos: int
    tipo: str
    descricao: str
    referencia_id: Optional[str] = None
    id: Optional[str] = None


@dataclass(slots=True)
class Favorite:
    user_id: str
    produto_id: str
    id: Optional[str] = None
    data_adicionado: Optional[datetime] = field(default=None)
