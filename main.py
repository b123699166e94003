"""
Asset Viewer 主入口：启动 FastAPI 后端服务。
"""

import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from asset_viewer import api
from asset_viewer.asset_store import LocalAssetStore
from asset_viewer.config_loader import AppConfig, load_config
from asset_viewer.descriptors import DescriptorRegistry
from asset_viewer.events import EventBus
from asset_viewer.i18n import Translator
from asset_viewer.store_client import AssetStoreClient

# 日志配置
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_store(config: AppConfig, event_bus: EventBus):
    """配置了远程地址时使用 REST 客户端，否则使用本地 TinyDB 存储。"""
    if config.store.url:
        logger.info(f"使用远程资产存储: {config.store.url}")
        return AssetStoreClient(config.store.url, timeout=config.store.timeout, token=config.store.token)

    db_path = None
    if config.store.data_dir:
        db_path = f"{config.store.data_dir.rstrip('/')}/assets.json"
    return LocalAssetStore(db_path, event_bus=event_bus)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan 事件处理：启动时和关闭时的逻辑。"""
    store = app.state.store
    if isinstance(store, LocalAssetStore):
        logger.info(f"本地资产库中共有 {len(store.all())} 个资产")

    yield  # 应用运行中

    # 关闭时：关闭数据库连接
    logger.info("正在关闭...")
    if isinstance(store, LocalAssetStore):
        store.close()


def create_app(config: AppConfig | None = None) -> FastAPI:
    """创建并配置 FastAPI 应用。"""
    app = FastAPI(
        title="Asset Viewer API",
        description="Configurable asset inspector views",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── 初始化核心组件 ────────────────────────────────────────
    if config is None:
        logger.info("正在加载配置...")
        config = load_config()

    event_bus = EventBus()
    store = create_store(config, event_bus)
    registry = DescriptorRegistry(config.descriptors, config.value_descriptors)
    translator = Translator(config.translations)

    # 注入依赖到 API 模块
    api.init_api(
        store=store,
        event_bus=event_bus,
        config=config,
        registry=registry,
        translator=translator,
    )

    # 注册 API 路由
    app.include_router(api.router)

    # 将组件存到 app.state，供 lifespan 访问
    app.state.config = config
    app.state.store = store
    app.state.event_bus = event_bus

    return app


def main():
    """主入口。"""
    port = int(sys.argv[1]) if len(sys.argv) > 1 else 8400

    logger.info(f"🚀 启动 Asset Viewer 后端 (port={port})...")

    app = create_app()

    uvicorn.run(
        app,
        host="127.0.0.1",
        port=port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
