http200 = 200
http201 = 201
http302 = 302
http400 = 400
http401 = 401
http403 = 403
http404 = 404
http409 = 409
http500 = 500
