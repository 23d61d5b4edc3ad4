from app.schemas.init import init_beanie_odm
from app.shared.storage.mongo import get_mongo_client

LIVECAST_MONGO_LABEL = "livecast_primary"


async def init_schema():
    mongo_client = get_mongo_client(LIVECAST_MONGO_LABEL)
    db = mongo_client.get_database()
    await init_beanie_odm(db)


if __name__ == "__main__":
    import asyncio

    asyncio.run(init_schema())
