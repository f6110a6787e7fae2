import html
import logging
import traceback

import gradio as gr
import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from catalog import category_config
from catalog.attribute_selector import AttributeSelector
from catalog.category_registry import CategoryRegistry
from catalog.database import RowStore
from catalog.errors import StoreError
from catalog.item_form import ItemFormSession
from catalog.models import CustomField
from catalog.util import configure_logging, load_settings

from constants import DEFAULT_ATTRIBUTES
from constants import DESCRIPTION_KEY
from constants import MAX_CATEGORY_ATTRIBUTES
from constants import UNIT_OF_MEASURE_OPTIONS

logger = logging.getLogger(__name__)

MAIN_PATH = "/home"


class Console:
    """库存管理控制台：把 gradio 事件转发给物品编辑会话和类别管理。"""

    def __init__(self, store: RowStore):
        self.store = store
        self.registry = CategoryRegistry(store)

    # ==================== 渲染 ====================

    def category_choices(self):
        return [(c.name, c.id) for c in self.registry.list()]

    def render_items_html(self):
        items = self.store.list_items()
        if not items:
            return "<div style='text-align: center; padding: 50px; color: #999;'>暂无物品信息</div>"

        rows_html = "".join(
            f"""
            <tr>
                <td>{html.escape(str(item.id))}</td>
                <td>{html.escape(item.name)}</td>
                <td>{html.escape(item.category or '')}</td>
                <td>{html.escape(item.sku or '')}</td>
                <td>{html.escape(str(item.current_stock))}</td>
                <td>{html.escape(item.specifications)}</td>
            </tr>
            """
            for item in items
        )
        return (
            "<table style='width: 100%; border-collapse: collapse;'>"
            "<thead><tr><th>ID</th><th>名称</th><th>类别</th><th>SKU</th><th>库存</th><th>规格</th></tr></thead>"
            f"<tbody>{rows_html}</tbody>"
            "</table>"
        )

    @staticmethod
    def spec_rows(session: ItemFormSession):
        return [[k, v] for k, v in session.specification.items() if k != DESCRIPTION_KEY]

    @staticmethod
    def custom_rows(session: ItemFormSession):
        return [[c.key, c.value] for c in session.custom_fields] or [["", ""]]

    @staticmethod
    def apply_tables(session: ItemFormSession, description, spec_rows, custom_rows):
        """把表格里的编辑写回会话（空键的行忽略）。"""
        spec = {DESCRIPTION_KEY: description or ""}
        for row in spec_rows or []:
            key = str(row[0] or "").strip() if row else ""
            if key:
                spec[key] = "" if row[1] is None else str(row[1])
        session.specification = spec
        session.custom_fields = [
            CustomField(key=str(row[0] or ""), value="" if row[1] is None else str(row[1]))
            for row in custom_rows or []
            if row and (str(row[0] or "").strip() or str(row[1] or "").strip())
        ]

    def with_registry_error(self, msg: str) -> str:
        """类别列表拉取失败时，在提示后面附上原因，避免被当成“没有类别”。"""
        error = self.registry.last_error
        if error is None:
            return msg
        return f"{msg}\n⚠️ 类别加载失败：{error}"

    def form_outputs(self, session: ItemFormSession, msg: str):
        form = session.form
        choices = self.category_choices()
        return (
            session,
            self.with_registry_error(msg),
            "" if session.item_id is None else str(session.item_id),
            form["name"],
            gr.update(choices=choices, value=session.category_id),
            form["unit_of_measure"],
            form["sku"],
            form["purchase_cost"],
            form["selling_price"],
            form["current_stock"],
            form["reorder_level"],
            session.specification.get(DESCRIPTION_KEY, ""),
            self.spec_rows(session),
            self.custom_rows(session),
        )

    # ==================== 物品编辑 ====================

    def _session(self, session):
        return session if session is not None else ItemFormSession(self.registry, self.store)

    def on_new(self, session):
        session = self._session(session)
        session.new()
        return self.form_outputs(session, "新建物品")

    def on_load(self, session, item_id):
        session = self._session(session)
        try:
            ok, msg = session.load(int(str(item_id).strip()))
        except ValueError:
            ok, msg = False, "物品ID必须是数字"
        return self.form_outputs(session, ("✅ " if ok else "❌ ") + msg)

    def on_category_change(self, session, category_id, description, spec_rows, custom_rows):
        session = self._session(session)
        self.apply_tables(session, description, spec_rows, custom_rows)
        session.change_category(category_id)
        return session, self.spec_rows(session), self.custom_rows(session)

    def on_submit(
        self, session, name, unit, sku, purchase_cost, selling_price,
        current_stock, reorder_level, description, spec_rows, custom_rows,
    ):
        session = self._session(session)
        for field, value in (
            ("name", name),
            ("unit_of_measure", unit),
            ("sku", sku),
            ("purchase_cost", purchase_cost),
            ("selling_price", selling_price),
            ("current_stock", current_stock),
            ("reorder_level", reorder_level),
        ):
            session.set_field(field, value)
        self.apply_tables(session, description, spec_rows, custom_rows)

        ok, msg, _ = session.submit()
        return session, self.with_registry_error(("✅ " if ok else "❌ ") + msg), self.render_items_html()

    # ==================== 类别管理 ====================

    def on_category_select(self, category_id):
        category = self.registry.find_by_id(category_id)
        if category is None:
            return "", "\n".join(DEFAULT_ATTRIBUTES)
        return category.name, "\n".join(category.attributes)

    @staticmethod
    def on_attribute_add(attributes_text, new_attribute):
        selector = AttributeSelector(
            DEFAULT_ATTRIBUTES,
            (attributes_text or "").splitlines(),
            max_items=MAX_CATEGORY_ATTRIBUTES,
        )
        ok, msg = selector.add(new_attribute)
        return "\n".join(selector.items), ("" if ok else new_attribute), msg

    @staticmethod
    def on_attribute_remove_last(attributes_text):
        selector = AttributeSelector(DEFAULT_ATTRIBUTES, (attributes_text or "").splitlines())
        _, msg = selector.remove_last()
        return "\n".join(selector.items), msg

    def on_category_save(
        self, session, category_id, name, attributes_text, description, spec_rows, custom_rows,
    ):
        if session is not None:
            # 表格会用会话重新渲染，先收下尚未提交的编辑
            self.apply_tables(session, description, spec_rows, custom_rows)
        attributes = [a.strip() for a in (attributes_text or "").splitlines() if a.strip()]
        ok, msg, category = category_config.save_category(
            self.store, self.registry, category_id, name, attributes
        )
        if ok and category_id in (None, "") and session is not None:
            # 编辑中的物品自动选中刚建好的类别
            session.category_created(category.id, category.name)
        choices = self.category_choices()
        selected = category.id if ok else category_id
        return (
            session,
            self.with_registry_error(("✅ " if ok else "❌ ") + msg),
            gr.update(choices=choices, value=selected),
            gr.update(choices=choices, value=session.category_id if session else None),
            self.spec_rows(session) if session else gr.update(),
            self.custom_rows(session) if session else gr.update(),
        )

    def on_category_delete(self, category_id):
        ok, msg = category_config.delete_category(self.store, self.registry, category_id)
        choices = self.category_choices()
        return self.with_registry_error(("✅ " if ok else "❌ ") + msg), gr.update(choices=choices, value=None)

    # ==================== 界面 ====================

    def build_ui(self) -> gr.Blocks:
        with gr.Blocks(title="库存管理 - 物品与类别") as ui:
            gr.Markdown(value="# 📦 库存管理")
            session_state = gr.State(None)

            with gr.Tab(label="📝 物品编辑"):
                with gr.Row():
                    with gr.Column():
                        with gr.Row():
                            item_id = gr.Textbox(label="物品ID", placeholder="留空表示新建")
                            load_btn = gr.Button("载入")
                            new_btn = gr.Button("新建")
                        name = gr.Textbox(label="物品名称*")
                        category = gr.Dropdown(choices=self.category_choices(), label="类别")
                        unit = gr.Dropdown(choices=UNIT_OF_MEASURE_OPTIONS, value="pieces", label="计量单位")
                        sku = gr.Textbox(label="SKU")
                        with gr.Row():
                            purchase_cost = gr.Textbox(label="采购成本", value="0")
                            selling_price = gr.Textbox(label="售价", value="0")
                            current_stock = gr.Textbox(label="当前库存", value="0")
                            reorder_level = gr.Textbox(label="补货阈值", value="0")
                        description = gr.Textbox(label="描述", lines=3)
                        spec_table = gr.Dataframe(
                            headers=["属性", "值"], type="array",
                            label="类别属性", interactive=True,
                        )
                        custom_table = gr.Dataframe(
                            headers=["键", "值"], type="array",
                            value=[["", ""]], label="自定义字段", interactive=True,
                        )
                        submit_btn = gr.Button("保存物品", variant="primary")
                    with gr.Column():
                        item_output = gr.Textbox(label="操作结果", lines=2)
                        items_html = gr.HTML(value=self.render_items_html())

                form_fields = [
                    session_state, item_output, item_id, name, category, unit, sku,
                    purchase_cost, selling_price, current_stock, reorder_level,
                    description, spec_table, custom_table,
                ]
                new_btn.click(self.on_new, inputs=[session_state], outputs=form_fields)
                load_btn.click(self.on_load, inputs=[session_state, item_id], outputs=form_fields)
                category.input(
                    self.on_category_change,
                    inputs=[session_state, category, description, spec_table, custom_table],
                    outputs=[session_state, spec_table, custom_table],
                )
                submit_btn.click(
                    self.on_submit,
                    inputs=[
                        session_state, name, unit, sku, purchase_cost, selling_price,
                        current_stock, reorder_level, description, spec_table, custom_table,
                    ],
                    outputs=[session_state, item_output, items_html],
                )

            with gr.Tab(label="🏷️ 类别管理"):
                with gr.Row():
                    with gr.Column():
                        cat_select = gr.Dropdown(
                            choices=self.category_choices(), label="选择类别（留空表示新建）"
                        )
                        cat_name = gr.Textbox(label="类别名称*")
                        cat_attrs = gr.Textbox(
                            label="属性（每行一个，默认属性固定在最前）",
                            lines=8, value="\n".join(DEFAULT_ATTRIBUTES),
                        )
                        with gr.Row():
                            attr_input = gr.Textbox(label="新属性", placeholder="输入后点击添加")
                            attr_add_btn = gr.Button("添加属性")
                            attr_pop_btn = gr.Button("删除最后一个")
                        with gr.Row():
                            cat_save_btn = gr.Button("保存类别", variant="primary")
                            cat_delete_btn = gr.Button("删除类别", variant="stop")
                    with gr.Column():
                        cat_output = gr.Textbox(label="操作结果", lines=2)

                cat_select.input(self.on_category_select, inputs=[cat_select], outputs=[cat_name, cat_attrs])
                attr_add_btn.click(
                    self.on_attribute_add,
                    inputs=[cat_attrs, attr_input],
                    outputs=[cat_attrs, attr_input, cat_output],
                )
                attr_pop_btn.click(
                    self.on_attribute_remove_last, inputs=[cat_attrs], outputs=[cat_attrs, cat_output]
                )
                cat_save_btn.click(
                    self.on_category_save,
                    inputs=[
                        session_state, cat_select, cat_name, cat_attrs,
                        description, spec_table, custom_table,
                    ],
                    outputs=[session_state, cat_output, cat_select, category, spec_table, custom_table],
                )
                cat_delete_btn.click(self.on_category_delete, inputs=[cat_select], outputs=[cat_output, cat_select])

        return ui


def create_app(settings: dict | None = None) -> FastAPI:
    settings = settings or load_settings()
    console = Console(RowStore(settings["db_file"]))

    app = FastAPI()

    @app.get("/", response_class=HTMLResponse)
    def read_main():
        return f"""
        <!DOCTYPE html>
        <html>
            <head><title>库存管理</title></head>
            <body style="font-family: -apple-system, sans-serif; text-align: center; padding-top: 20vh;">
                <h1>库存管理</h1>
                <a href="{MAIN_PATH}">进入控制台</a>
            </body>
        </html>
        """

    try:
        console.registry.refresh()
    except StoreError:
        logger.warning("Starting with an empty category list")

    return gr.mount_gradio_app(app, console.build_ui(), path=MAIN_PATH)


if __name__ == "__main__":
    settings = load_settings()
    configure_logging(settings["log_level"])
    try:
        uvicorn.run(create_app(settings), host=settings["host"], port=settings["port"])
    except Exception:
        traceback.print_exc()
