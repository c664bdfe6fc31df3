"""JSON shapes returned by the dev backend (Laravel resource style)."""

from src.bizdesk.backend.models import Article, Collaborator, Notification, Transaction, User


def ok(data=None, message: str = "") -> dict:
    return {"success": True, "message": message, "data": data}


def user_dict(user: User, with_stats: bool = False) -> dict:
    data = {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "username": user.username,
        "email": user.email,
        "company_share": user.company_share,
        "profile_image": user.profile_image,
    }
    if with_stats:
        articles = user.articles
        data.update(
            total_articles=len(articles),
            total_low_stock=sum(1 for a in articles if a.low_stock),
            total_stock_value=round(sum(a.stock_value for a in articles), 2),
            total_remaining_quantity=sum(a.quantity for a in articles),
            total_sale=user.total_sale,
            total_expense=user.total_expense,
            calculated_wallet=user.calculated_wallet,
            wallet=user.wallet,
        )
    return data


def article_dict(article: Article) -> dict:
    return {
        "id": article.id,
        "name": article.name,
        "sale_price": article.sale_price,
        "quantity": article.quantity,
        "type": article.type.value,
        "image": article.image,
        "low_stock": article.low_stock,
        "stock_value": article.stock_value,
    }


def collaborator_dict(collaborator: Collaborator) -> dict:
    return {
        "id": collaborator.id,
        "user_id": collaborator.user_id,
        "name": collaborator.name,
        "phone": collaborator.phone,
        "part": collaborator.part,
        "image": collaborator.image,
        "wallet": collaborator.wallet,
    }


def notification_dict(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "read": notification.read,
        "article_id": notification.article_id,
        "created_at": notification.created_at.isoformat(),
    }


def transaction_dict(transaction: Transaction) -> dict:
    return {
        "id": transaction.id,
        "type": transaction.type.value,
        "name": transaction.name,
        "amount": transaction.amount,
        "article_id": transaction.article_id,
        "quantity": transaction.quantity,
        "sale_price": transaction.sale_price,
        "created_at": transaction.created_at.isoformat(),
        "updated_at": transaction.updated_at.isoformat(),
    }
