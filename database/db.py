from peewee import Proxy

# Конкретная база подключается в database.init.init_from_env
db = Proxy()
